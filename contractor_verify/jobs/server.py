"""HTTP entrypoint for business verification and rate limiting."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict

import psycopg2
from flask import Flask, jsonify, request

from contractor_verify.core.config import get_settings
from contractor_verify.models import BadRequestError, RateLimitRequest, VerificationRequest
from contractor_verify.ratelimit import gate
from contractor_verify.ratelimit.store import RateLimitStoreError, get_store
from contractor_verify.vendors.google_places import GooglePlacesError, PlaceNotFoundError
from contractor_verify.verification.service import verify_business

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

# ---------- App ----------
app = Flask(__name__)


@app.after_request
def add_cors_headers(response):
    response.headers.update(CORS_HEADERS)
    return response


def _json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _error(message: str, status: int) -> Any:
    return jsonify({"error": message}), status


# ---------- Routes ----------


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; reads settings only, never the database."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "rate_limit_backend": settings.rate_limit_backend,
                "places_configured": bool(settings.google_maps_api_key),
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.get("/google-maps-key")
def google_maps_key() -> Any:
    """Hand the browser the Maps key used by the Places autocomplete widget."""
    api_key = get_settings().google_maps_api_key
    if not api_key:
        return _error("Google Maps API key not configured", 500)
    return jsonify({"apiKey": api_key}), 200


@app.post("/google-business-verification")
def google_business_verification() -> Any:
    """
    Verify a contractor business against its Google Places listing.
    Required JSON fields: contractorId, googlePlaceId, businessName
    Optional: address, phone
    """
    try:
        verification = VerificationRequest.from_payload(_json_body())
    except BadRequestError as exc:
        return _error(str(exc), 400)

    api_key = get_settings().google_maps_api_key
    if not api_key:
        return _error("Google Maps API key not configured", 500)

    try:
        result = verify_business(verification, api_key)
    except PlaceNotFoundError:
        return _error("Invalid Google Place ID or place not found", 400)
    except GooglePlacesError as exc:
        logger.error("Google Places unavailable for place_id=%s: %s", verification.google_place_id, exc)
        return _error("Internal server error", 500)
    except psycopg2.Error as exc:
        logger.error("Failed to record verification for contractor=%s: %s", verification.contractor_id, exc)
        return _error("Internal server error", 500)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Verification error: %s", exc)
        return _error("Internal server error", 500)

    return jsonify(result.to_response()), 200


@app.post("/rate-limiter")
def rate_limiter() -> Any:
    """
    Count one call against a sliding window.
    Required JSON fields: identifier, action
    Optional: limit (int), window (int, minutes)
    """
    settings = get_settings()
    try:
        limit_request = RateLimitRequest.from_payload(
            _json_body(),
            default_limit=settings.rate_limit_default_limit,
            default_window=settings.rate_limit_default_window,
        )
    except BadRequestError as exc:
        return _error(str(exc), 400)

    try:
        decision = gate.check(
            get_store(settings),
            limit_request.identifier,
            limit_request.action,
            limit=limit_request.limit,
            window_minutes=limit_request.window,
        )
    except RateLimitStoreError as exc:
        logger.error("Error counting requests: %s", exc)
        return _error("Internal server error", 500)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Error in rate limiter: %s", exc)
        return _error("Internal server error", 500)

    status = 200 if decision.allowed else 429
    return jsonify(decision.to_response()), status


def main() -> None:
    settings = get_settings()
    port = settings.port
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
