"""Database helpers for the verification service."""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Optional

from psycopg2 import pool

from contractor_verify.core.config import get_settings

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.ThreadedConnectionPool] = None
_pool_lock = threading.Lock()


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.ThreadedConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    with _pool_lock:
        if _connection_pool is None:
            settings = get_settings()
            if not settings.database_url:
                raise RuntimeError("DATABASE_URL is required for database connections")
            _connection_pool = pool.ThreadedConnectionPool(
                minconn,
                maxconn,
                dsn=settings.database_url,
                connect_timeout=10,
            )
            logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


_MARK_VERIFIED = """
UPDATE contractor_businesses SET
    google_business_verified = TRUE,
    google_place_id = %(place_id)s,
    google_verification_date = %(verified_at)s,
    google_business_url = %(google_url)s
WHERE id = %(contractor_id)s;
"""


def _prepare_verification_params(
    contractor_id: str,
    place_id: str,
    google_url: Optional[str],
    verified_at: datetime,
) -> Dict[str, Any]:
    return {
        "contractor_id": str(contractor_id),
        "place_id": place_id,
        "google_url": google_url or None,
        "verified_at": verified_at,
    }


def mark_business_verified(
    contractor_id: str,
    place_id: str,
    google_url: Optional[str],
    verified_at: datetime,
) -> int:
    """Record a successful Google verification against a contractor business.

    Returns the number of rows updated. Database errors propagate to the caller.
    """
    if not contractor_id or not place_id:
        raise ValueError("contractor_id and place_id are required to mark a business verified")

    params = _prepare_verification_params(contractor_id, place_id, google_url, verified_at)
    with get_connection() as conn:
        try:
            with conn.cursor() as cur:
                cur.execute(_MARK_VERIFIED, params)
                updated = cur.rowcount
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    if updated == 0:
        logger.warning("No contractor business found for id=%s; verification not recorded", contractor_id)
    else:
        logger.info("Marked contractor business %s as Google verified (place_id=%s)", contractor_id, place_id)
    return updated
