"""Client utilities for the Google Places API."""

import logging
from typing import Any, Dict

import requests

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://maps.googleapis.com/maps/api/place"

DETAILS_FIELDS = "place_id,name,formatted_address,formatted_phone_number,website,business_status,url"


class GooglePlacesError(RuntimeError):
    """Raised when the Places API cannot be reached or answers with an HTTP error."""


class PlaceNotFoundError(GooglePlacesError):
    """Raised when the Places API does not resolve a place id to a result."""


def place_details(place_id: str, api_key: str) -> Dict[str, Any]:
    """Fetch the canonical listing for ``place_id``.

    Any status other than ``OK``, or an ``OK`` without a result, is treated as
    an unresolvable place id.
    """
    params = {"place_id": place_id, "key": api_key, "fields": DETAILS_FIELDS}
    try:
        response = _SESSION.get(f"{_BASE_URL}/details/json", params=params, timeout=10)
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.error("place_details request failed for place_id=%s: %s", place_id, exc)
        raise GooglePlacesError(f"Google Places request failed: {exc}") from exc

    status = payload.get("status")
    result = payload.get("result")
    if status != "OK" or not result:
        logger.error(
            "place_details lookup failed: place_id=%s status=%s, error_message=%s",
            place_id,
            status,
            payload.get("error_message"),
        )
        raise PlaceNotFoundError(payload.get("error_message") or status or "place not found")
    return result
