"""Weighted comparison of a claimed business identity with its Google listing.

Each field that is present on both sides contributes ``similarity * weight`` to
the score and ``weight`` to the normaliser. Fields missing on either side are
left out entirely, so the remaining fields are re-normalised instead of being
penalised. Weights and threshold are business policy and are not configurable.
"""

import logging
from typing import Callable, List, Optional, Tuple

from contractor_verify.models import CanonicalIdentity, ClaimedIdentity, VerificationResult
from contractor_verify.verification.similarity import digits_only, similarity

logger = logging.getLogger(__name__)

NAME_WEIGHT = 0.4
ADDRESS_WEIGHT = 0.4
PHONE_WEIGHT = 0.2
VERIFICATION_THRESHOLD = 0.7


def _lower(value: str) -> str:
    return value.lower()


def _field_pairs(
    claimed: ClaimedIdentity, canonical: CanonicalIdentity
) -> List[Tuple[str, Optional[str], Optional[str], float, Callable[[str], str]]]:
    return [
        ("name", claimed.business_name, canonical.name, NAME_WEIGHT, _lower),
        ("address", claimed.address, canonical.formatted_address, ADDRESS_WEIGHT, _lower),
        ("phone", claimed.phone, canonical.formatted_phone_number, PHONE_WEIGHT, digits_only),
    ]


def score(claimed: ClaimedIdentity, canonical: CanonicalIdentity) -> VerificationResult:
    """Score ``claimed`` against ``canonical`` and apply the verification threshold."""
    weighted = 0.0
    total_weight = 0.0

    for field, claimed_value, canonical_value, weight, prepare in _field_pairs(claimed, canonical):
        if not claimed_value or not canonical_value:
            logger.debug("Skipping %s: not present on both sides", field)
            continue
        field_score = similarity(prepare(claimed_value), prepare(canonical_value))
        logger.debug("Field %s similarity=%.3f weight=%.1f", field, field_score, weight)
        weighted += field_score * weight
        total_weight += weight

    # Plain float arithmetic: a lone field at exactly 0.7 lands just under the threshold.
    confidence = weighted / total_weight if total_weight > 0 else 0.0
    return VerificationResult(
        verified=confidence >= VERIFICATION_THRESHOLD,
        confidence_score=confidence,
        total_weight=total_weight,
        canonical=canonical,
    )
