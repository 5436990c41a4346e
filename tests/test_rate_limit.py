import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

import psycopg2
import pytest

from contractor_verify.models import MAX_WINDOW_MINUTES
from contractor_verify.ratelimit import gate, store

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_limit_rejects_third_call_in_window():
    events = store.InMemoryRateLimitStore()

    decisions = [
        gate.check(events, "1.2.3.4", "login", limit=2, window_minutes=60, now=NOW + timedelta(seconds=i))
        for i in range(3)
    ]

    assert [d.allowed for d in decisions] == [True, True, False]
    assert [d.remaining for d in decisions] == [1, 0, 0]
    assert decisions[2].message == "Rate limit exceeded. Try again after 60 minutes."


def test_rejected_calls_are_not_logged():
    events = store.InMemoryRateLimitStore()
    for _ in range(5):
        gate.check(events, "user-1", "verify", limit=2, window_minutes=60, now=NOW)

    assert len(events) == 2


def test_admission_resets_after_window():
    events = store.InMemoryRateLimitStore()
    gate.check(events, "user-1", "verify", limit=2, window_minutes=60, now=NOW)
    gate.check(events, "user-1", "verify", limit=2, window_minutes=60, now=NOW)
    assert gate.check(events, "user-1", "verify", limit=2, window_minutes=60, now=NOW).allowed is False

    later = NOW + timedelta(minutes=61)
    decision = gate.check(events, "user-1", "verify", limit=2, window_minutes=60, now=later)

    assert decision.allowed is True
    assert decision.remaining == 1


def test_keys_are_counted_independently():
    events = store.InMemoryRateLimitStore()
    gate.check(events, "user-1", "verify", limit=1, window_minutes=60, now=NOW)

    assert gate.check(events, "user-1", "search", limit=1, window_minutes=60, now=NOW).allowed is True
    assert gate.check(events, "user-2", "verify", limit=1, window_minutes=60, now=NOW).allowed is True
    assert gate.check(events, "user-1", "verify", limit=1, window_minutes=60, now=NOW).allowed is False


def test_reset_time_is_one_window_ahead():
    events = store.InMemoryRateLimitStore()

    decision = gate.check(events, "user-1", "verify", window_minutes=15, now=NOW)

    assert decision.reset_time == NOW + timedelta(minutes=15)
    assert decision.remaining == 99
    assert decision.to_response() == {
        "allowed": True,
        "remaining": 99,
        "resetTime": "2024-05-01T12:15:00.000Z",
    }


def test_purge_removes_expired_events_of_every_key():
    events = store.InMemoryRateLimitStore()
    old = NOW - timedelta(minutes=90)
    events.append("user-1", "verify", old)
    events.append("user-2", "search", old)
    events.append("user-3", "search", NOW - timedelta(minutes=5))

    gate.check(events, "user-9", "login", window_minutes=60, now=NOW)

    # user-3's recent event plus the new user-9 event remain
    assert len(events) == 2
    assert events.count_since("user-3", "search", NOW - timedelta(minutes=60)) == 1


class FailingStore(store.RateLimitStore):
    def __init__(self, fail_on):
        self.fail_on = fail_on
        self.appended = []

    def append(self, identifier, action, at):
        if self.fail_on == "append":
            raise store.RateLimitStoreError("insert failed")
        self.appended.append((identifier, action, at))

    def count_since(self, identifier, action, since):
        if self.fail_on == "count":
            raise store.RateLimitStoreError("select failed")
        return 0

    def purge_before(self, cutoff):
        if self.fail_on == "purge":
            raise store.RateLimitStoreError("delete failed")
        return 0


@pytest.mark.parametrize("fail_on", ["purge", "count"])
def test_storage_errors_before_decision_propagate(fail_on):
    with pytest.raises(store.RateLimitStoreError):
        gate.check(FailingStore(fail_on), "user-1", "verify", now=NOW)


def test_append_failure_still_admits(caplog):
    with caplog.at_level("ERROR"):
        decision = gate.check(FailingStore("append"), "user-1", "verify", limit=3, now=NOW)

    assert decision.allowed is True
    assert decision.remaining == 2
    assert "Failed to log rate limit event" in " ".join(caplog.messages)


class DummyCursor:
    def __init__(self, connection):
        self.connection = connection
        self.rowcount = connection.rowcount

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, sql, params):
        if self.connection.error is not None:
            raise self.connection.error
        self.connection.collector.append((" ".join(sql.split()), params))

    def fetchone(self):
        return (self.connection.count,)


class DummyConnection:
    def __init__(self, rowcount=0, count=0, error=None):
        self.collector = []
        self.rowcount = rowcount
        self.count = count
        self.error = error
        self.commits = 0
        self.rollbacks = 0

    def cursor(self):
        return DummyCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1


@pytest.fixture
def patch_connection(monkeypatch):
    def install(connection):
        @contextmanager
        def fake_get_connection():
            yield connection

        monkeypatch.setattr(store.db, "get_connection", fake_get_connection)
        return connection

    return install


def test_postgres_store_statements(patch_connection):
    connection = patch_connection(DummyConnection(rowcount=4, count=7))
    pg = store.PostgresRateLimitStore()

    assert pg.purge_before(NOW) == 4
    assert pg.count_since("user-1", "verify", NOW) == 7
    pg.append("user-1", "verify", NOW)

    statements = [sql for sql, _ in connection.collector]
    assert statements[0].startswith("DELETE FROM rate_limit_log WHERE created_at <")
    assert statements[1].startswith("SELECT COUNT(*) FROM rate_limit_log")
    assert statements[2].startswith("INSERT INTO rate_limit_log")
    assert connection.collector[2][1] == {"identifier": "user-1", "action": "verify", "created_at": NOW}
    assert connection.commits == 3


def test_postgres_store_wraps_database_errors(patch_connection):
    connection = patch_connection(DummyConnection(error=psycopg2.OperationalError("server closed")))
    pg = store.PostgresRateLimitStore()

    with pytest.raises(store.RateLimitStoreError):
        pg.count_since("user-1", "verify", NOW)
    assert connection.rollbacks == 1


def test_get_store_follows_backend_setting(monkeypatch):
    class MemorySettings:
        rate_limit_backend = "memory"

    class PostgresSettings:
        rate_limit_backend = "postgres"

    monkeypatch.setattr(store, "_store", None)
    memory_store = store.get_store(MemorySettings())
    assert isinstance(memory_store, store.InMemoryRateLimitStore)
    assert store.get_store(PostgresSettings()) is memory_store

    monkeypatch.setattr(store, "_store", None)
    assert isinstance(store.get_store(PostgresSettings()), store.PostgresRateLimitStore)


def test_get_store_initialises_once_across_threads(monkeypatch):

    class MemorySettings:
        rate_limit_backend = "memory"

    monkeypatch.setattr(store, "_store", None)
    barrier = threading.Barrier(8)
    results = []

    def worker():
        barrier.wait()
        results.append(store.get_store(MemorySettings()))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(results) == 8
    assert all(result is results[0] for result in results)


def test_largest_accepted_window_stays_in_datetime_range():
    events = store.InMemoryRateLimitStore()

    decision = gate.check(events, "user-1", "verify", window_minutes=MAX_WINDOW_MINUTES, now=NOW)

    assert decision.allowed is True
    assert decision.reset_time == NOW + timedelta(minutes=MAX_WINDOW_MINUTES)
