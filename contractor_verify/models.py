"""Core data models shared by the verification and rate-limit handlers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional


# Keeps now - window well inside the datetime range.
MAX_WINDOW_MINUTES = 525600 * 100


class BadRequestError(ValueError):
    """Raised when a request body is missing required fields or carries invalid values."""


@dataclass(slots=True)
class ClaimedIdentity:
    """Business details as entered by the contractor."""

    business_name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None


@dataclass(slots=True)
class CanonicalIdentity:
    """Google Places snapshot of a business listing."""

    place_id: Optional[str] = None
    name: Optional[str] = None
    formatted_address: Optional[str] = None
    formatted_phone_number: Optional[str] = None
    website: Optional[str] = None
    business_status: Optional[str] = None
    url: Optional[str] = None

    @classmethod
    def from_place_details(cls, result: Mapping[str, Any]) -> "CanonicalIdentity":
        return cls(
            place_id=result.get("place_id"),
            name=result.get("name"),
            formatted_address=result.get("formatted_address"),
            formatted_phone_number=result.get("formatted_phone_number"),
            website=result.get("website"),
            business_status=result.get("business_status"),
            url=result.get("url"),
        )

    def to_place_details(self) -> Dict[str, Optional[str]]:
        """Shape used in the verification response body."""
        return {
            "name": self.name,
            "address": self.formatted_address,
            "phone": self.formatted_phone_number,
            "website": self.website,
            "businessStatus": self.business_status,
            "googleUrl": self.url,
        }


@dataclass(slots=True)
class VerificationResult:
    verified: bool
    confidence_score: float
    total_weight: float
    canonical: Optional[CanonicalIdentity] = None

    def to_response(self) -> Dict[str, Any]:
        return {
            "verified": self.verified,
            "verificationScore": self.confidence_score,
            "placeDetails": self.canonical.to_place_details() if self.canonical else None,
        }


@dataclass(slots=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_time: datetime
    message: Optional[str] = None

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "allowed": self.allowed,
            "remaining": self.remaining,
            "resetTime": format_timestamp(self.reset_time),
        }
        if self.message:
            body["message"] = self.message
        return body


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _optional_text(payload: Mapping[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _positive_int(payload: Mapping[str, Any], key: str, default: int, maximum: Optional[int] = None) -> int:
    raw = payload.get(key)
    if raw is None:
        return default
    # bool is an int subclass; reject it explicitly.
    if isinstance(raw, bool):
        raise BadRequestError(f"{key} must be numeric")
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise BadRequestError(f"{key} must be numeric") from exc
    if value <= 0:
        raise BadRequestError(f"{key} must be positive")
    if maximum is not None and value > maximum:
        raise BadRequestError(f"{key} must be at most {maximum}")
    return value


@dataclass(slots=True)
class VerificationRequest:
    contractor_id: str
    google_place_id: str
    claimed: ClaimedIdentity

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> "VerificationRequest":
        """Validate a ``google-business-verification`` JSON body."""
        payload = payload or {}
        contractor_id = _optional_text(payload, "contractorId")
        google_place_id = _optional_text(payload, "googlePlaceId")
        business_name = _optional_text(payload, "businessName")

        missing = [
            name
            for name, value in (
                ("contractorId", contractor_id),
                ("googlePlaceId", google_place_id),
                ("businessName", business_name),
            )
            if not value
        ]
        if missing:
            raise BadRequestError(f"Missing required parameters: {', '.join(missing)}")

        return cls(
            contractor_id=contractor_id,
            google_place_id=google_place_id,
            claimed=ClaimedIdentity(
                business_name=business_name,
                address=_optional_text(payload, "address"),
                phone=_optional_text(payload, "phone"),
            ),
        )


@dataclass(slots=True)
class RateLimitRequest:
    identifier: str
    action: str
    limit: int = 100
    window: int = 60

    @classmethod
    def from_payload(
        cls,
        payload: Optional[Mapping[str, Any]],
        default_limit: int = 100,
        default_window: int = 60,
    ) -> "RateLimitRequest":
        """Validate a ``rate-limiter`` JSON body; ``window`` is in minutes."""
        payload = payload or {}
        identifier = _optional_text(payload, "identifier")
        action = _optional_text(payload, "action")
        if not identifier or not action:
            raise BadRequestError("Missing required parameters: identifier and action")

        return cls(
            identifier=identifier,
            action=action,
            limit=_positive_int(payload, "limit", default_limit),
            window=_positive_int(payload, "window", default_window, maximum=MAX_WINDOW_MINUTES),
        )
