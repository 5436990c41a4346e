"""Google Business verification flow: lookup, score, and record."""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from contractor_verify.core import db
from contractor_verify.models import CanonicalIdentity, VerificationRequest, VerificationResult
from contractor_verify.vendors import google_places
from contractor_verify.verification import scorer

logger = logging.getLogger(__name__)

PlaceLookup = Callable[[str, str], Dict[str, Any]]
VerificationWriter = Callable[[str, str, Optional[str], datetime], Any]


def verify_business(
    verification: VerificationRequest,
    api_key: str,
    *,
    lookup: Optional[PlaceLookup] = None,
    persist: Optional[VerificationWriter] = None,
    now: Optional[datetime] = None,
) -> VerificationResult:
    """Verify a contractor's claimed identity against Google Places.

    Raises ``PlaceNotFoundError`` before any scoring when the place id does not
    resolve. The business row is updated only when the result is verified.
    """
    if not api_key:
        raise RuntimeError("GOOGLE_MAPS_API_KEY is required")

    lookup = lookup or google_places.place_details
    persist = persist or db.mark_business_verified

    details = lookup(verification.google_place_id, api_key)
    canonical = CanonicalIdentity.from_place_details(details)
    result = scorer.score(verification.claimed, canonical)

    logger.info(
        "Verification for contractor=%s place_id=%s score=%.3f verified=%s",
        verification.contractor_id,
        verification.google_place_id,
        result.confidence_score,
        result.verified,
    )

    if result.verified:
        verified_at = now or datetime.now(timezone.utc)
        persist(verification.contractor_id, verification.google_place_id, canonical.url, verified_at)

    return result
