"""CLI job to verify a contractor business against Google Places."""

import argparse
import json
import logging
from typing import List, Optional

from contractor_verify.core.config import ConfigError, get_settings
from contractor_verify.models import BadRequestError, VerificationRequest
from contractor_verify.vendors.google_places import GooglePlacesError
from contractor_verify.verification.service import verify_business

logger = logging.getLogger(__name__)

EXIT_VERIFIED = 0
EXIT_NOT_VERIFIED = 1
EXIT_ERROR = 2


def run_verification_job(
    *,
    contractor_id: str,
    place_id: str,
    business_name: str,
    address: Optional[str] = None,
    phone: Optional[str] = None,
    dry_run: bool = False,
) -> int:
    settings = get_settings()
    api_key = settings.google_maps_api_key
    if not api_key:
        raise ConfigError("GOOGLE_MAPS_API_KEY is required")

    verification = VerificationRequest.from_payload(
        {
            "contractorId": contractor_id,
            "googlePlaceId": place_id,
            "businessName": business_name,
            "address": address,
            "phone": phone,
        }
    )

    persist = None
    if dry_run:
        logger.info("Dry run: verification status will not be recorded")
        persist = lambda *args: None  # noqa: E731

    result = verify_business(verification, api_key, persist=persist)
    print(json.dumps(result.to_response(), indent=2))
    return EXIT_VERIFIED if result.verified else EXIT_NOT_VERIFIED


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Verify a contractor business with Google Places")
    parser.add_argument("--contractor-id", dest="contractor_id", required=True, help="contractor_businesses.id")
    parser.add_argument("--place-id", dest="place_id", required=True, help="Google Place ID")
    parser.add_argument("--name", dest="business_name", required=True, help="Business name as registered")
    parser.add_argument("--address", dest="address", help="Street address as registered")
    parser.add_argument("--phone", dest="phone", help="Phone number as registered")
    parser.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_true",
        help="Score only; do not update the business record",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        return run_verification_job(
            contractor_id=args.contractor_id,
            place_id=args.place_id,
            business_name=args.business_name,
            address=args.address,
            phone=args.phone,
            dry_run=args.dry_run,
        )
    except (ConfigError, BadRequestError, GooglePlacesError) as exc:
        logger.error("Verification failed: %s", exc)
        return EXIT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
