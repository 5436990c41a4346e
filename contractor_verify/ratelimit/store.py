"""Append-only event logs backing the rate-limit gate."""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple

import psycopg2

from contractor_verify.core import db
from contractor_verify.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class RateLimitStoreError(RuntimeError):
    """Raised when the event log cannot be read or written."""


class RateLimitStore(ABC):
    """Log of ``(identifier, action, timestamp)`` events."""

    @abstractmethod
    def append(self, identifier: str, action: str, at: datetime) -> None:
        ...

    @abstractmethod
    def count_since(self, identifier: str, action: str, since: datetime) -> int:
        ...

    @abstractmethod
    def purge_before(self, cutoff: datetime) -> int:
        """Delete events of every key older than ``cutoff``; return how many went."""


class InMemoryRateLimitStore(RateLimitStore):
    """Process-local log, suitable for a single worker or tests."""

    def __init__(self) -> None:
        self._events: List[Tuple[str, str, datetime]] = []
        self._lock = threading.Lock()

    def append(self, identifier: str, action: str, at: datetime) -> None:
        with self._lock:
            self._events.append((identifier, action, at))

    def count_since(self, identifier: str, action: str, since: datetime) -> int:
        with self._lock:
            return sum(
                1
                for event_identifier, event_action, at in self._events
                if event_identifier == identifier and event_action == action and at >= since
            )

    def purge_before(self, cutoff: datetime) -> int:
        with self._lock:
            before = len(self._events)
            self._events = [event for event in self._events if event[2] >= cutoff]
            return before - len(self._events)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


_PURGE = "DELETE FROM rate_limit_log WHERE created_at < %(cutoff)s;"

_COUNT = """
SELECT COUNT(*) FROM rate_limit_log
WHERE identifier = %(identifier)s
  AND action = %(action)s
  AND created_at >= %(since)s;
"""

_INSERT = """
INSERT INTO rate_limit_log (identifier, action, created_at)
VALUES (%(identifier)s, %(action)s, %(created_at)s);
"""


class PostgresRateLimitStore(RateLimitStore):
    """Event log kept in the ``rate_limit_log`` table."""

    def _execute(self, sql: str, params: dict, fetch: bool = False) -> int:
        try:
            with db.get_connection() as conn:
                try:
                    with conn.cursor() as cur:
                        cur.execute(sql, params)
                        value = cur.fetchone()[0] if fetch else cur.rowcount
                    conn.commit()
                except psycopg2.Error:
                    conn.rollback()
                    raise
        except psycopg2.Error as exc:
            raise RateLimitStoreError(f"rate_limit_log query failed: {exc}") from exc
        return value

    def append(self, identifier: str, action: str, at: datetime) -> None:
        self._execute(_INSERT, {"identifier": identifier, "action": action, "created_at": at})

    def count_since(self, identifier: str, action: str, since: datetime) -> int:
        return int(self._execute(_COUNT, {"identifier": identifier, "action": action, "since": since}, fetch=True))

    def purge_before(self, cutoff: datetime) -> int:
        return self._execute(_PURGE, {"cutoff": cutoff})


_store: Optional[RateLimitStore] = None
_store_lock = threading.Lock()


def get_store(settings: Optional[Settings] = None) -> RateLimitStore:
    """Return the process-wide store selected by ``RATE_LIMIT_BACKEND``."""
    global _store
    with _store_lock:
        if _store is None:
            settings = settings or get_settings()
            if settings.rate_limit_backend == "memory":
                _store = InMemoryRateLimitStore()
            else:
                _store = PostgresRateLimitStore()
            logger.info("Rate limit store initialised: %s", type(_store).__name__)
    return _store
