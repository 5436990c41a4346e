"""Sliding-window rate limiting keyed by ``(identifier, action)``.

The check is not atomic: two concurrent calls at the limit boundary can both
observe ``count < limit`` and both be admitted. Enforcing a hard limit needs a
compare-and-increment in the backing store.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from contractor_verify.models import RateLimitDecision
from contractor_verify.ratelimit.store import RateLimitStore

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100
DEFAULT_WINDOW_MINUTES = 60


def check(
    store: RateLimitStore,
    identifier: str,
    action: str,
    limit: int = DEFAULT_LIMIT,
    window_minutes: int = DEFAULT_WINDOW_MINUTES,
    now: Optional[datetime] = None,
) -> RateLimitDecision:
    """Admit or reject one call and record it when admitted.

    Purge and count failures propagate as ``RateLimitStoreError``. A failure to
    record an admitted call is logged and ignored.
    """
    now = now or datetime.now(timezone.utc)
    window = timedelta(minutes=window_minutes)
    window_start = now - window
    reset_time = now + window

    purged = store.purge_before(window_start)
    if purged:
        logger.debug("Purged %d expired rate limit events", purged)

    current_count = store.count_since(identifier, action, window_start)

    if current_count >= limit:
        logger.info(
            "Rate limit exceeded for identifier=%s action=%s (%d/%d in %d min)",
            identifier,
            action,
            current_count,
            limit,
            window_minutes,
        )
        return RateLimitDecision(
            allowed=False,
            remaining=0,
            reset_time=reset_time,
            message=f"Rate limit exceeded. Try again after {window_minutes} minutes.",
        )

    try:
        store.append(identifier, action, now)
    except Exception as exc:  # noqa: BLE001
        logger.error("Failed to log rate limit event for identifier=%s action=%s: %s", identifier, action, exc)

    return RateLimitDecision(
        allowed=True,
        remaining=limit - current_count - 1,
        reset_time=reset_time,
    )
