"""CLI interface for resolving a listing location from coordinates."""

import argparse
import asyncio
import json
import logging
import sys

from listing_location.core.config import settings
from listing_location.core.geocoding import ReverseGeocodeClient
from listing_location.core.logging import configure_logging
from listing_location.hierarchy import HierarchyClient
from listing_location.models import FetchStatus
from listing_location.session import LocationSession

logger = logging.getLogger(__name__)


def _latitude(value: str) -> float:
    return _bounded(value, 90.0)


def _longitude(value: str) -> float:
    return _bounded(value, 180.0)


def _bounded(value: str, limit: float) -> float:
    try:
        number = float(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not a number: {value}") from e
    if not -limit <= number <= limit:
        raise argparse.ArgumentTypeError(f"{number} is outside [-{limit}, {limit}]")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Resolve country, region, community and settlement for a point"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    resolve = subparsers.add_parser(
        "resolve", help="Reverse geocode a point and match it to the hierarchy"
    )
    resolve.add_argument("--lat", type=_latitude, required=True, help="Latitude")
    resolve.add_argument("--lon", type=_longitude, required=True, help="Longitude")
    resolve.add_argument(
        "--api-url",
        default=settings.LISTING_API_URL,
        help=f"Listing API root (default: {settings.LISTING_API_URL})",
    )
    resolve.add_argument(
        "--geocoder-url",
        default=settings.GEOCODER_URL,
        help=f"Reverse geocoding provider (default: {settings.GEOCODER_URL})",
    )
    return parser


async def resolve_point(
    latitude: float, longitude: float, api_url: str, geocoder_url: str
) -> tuple[dict, bool]:
    """Run the auto-fill pipeline for one point.

    Returns:
        Tuple of (printable result, whether a country was matched)
    """
    session = LocationSession(
        hierarchy_client=HierarchyClient(base_url=api_url),
        geocoder=ReverseGeocodeClient(base_url=geocoder_url),
    )
    await session.start(request_device_location=False)
    if session.store.countries.status != FetchStatus.SUCCEEDED:
        logger.error(f"Could not load countries: {session.store.countries.error}")
        return {"error": session.store.countries.error}, False

    await session.choose_map_point(latitude, longitude)

    store = session.store
    names = {
        "country": store.selected_country.name if store.selected_country else None,
        "region": store.selected_region.name if store.selected_region else None,
        "community": (
            store.selected_community.name if store.selected_community else None
        ),
    }
    result = {
        "selection": session.snapshot().model_dump(mode="json"),
        "names": names,
        "resolved": session.is_resolved(),
    }
    return result, session.last_match is not None


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the location CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(level="debug" if args.verbose else None)

    if args.command == "resolve":
        result, matched = asyncio.run(
            resolve_point(args.lat, args.lon, args.api_url, args.geocoder_url)
        )
        print(json.dumps(result, ensure_ascii=False, indent=2))
        return 0 if matched else 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
