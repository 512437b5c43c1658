"""Free-text settlement search."""

import logging
from typing import Any

import httpx

from listing_location.core.config import settings
from listing_location.core.geocoding.base import NominatimClient
from listing_location.models import CoordinateSource, GeoPoint, SettlementCandidate

logger = logging.getLogger(__name__)

# Place types offered as settlements
SETTLEMENT_KINDS = ("city", "town", "village", "hamlet")


class SettlementSearchClient(NominatimClient):
    """Searches populated places by name with the provider's ``/search``."""

    async def search(
        self, query: str, country_code: str | None = None
    ) -> list[SettlementCandidate]:
        """Search settlements matching a free-text query.

        Args:
            query: Name typed by the user
            country_code: Optional ISO code restricting results to one country

        Returns:
            Up to ``SETTLEMENT_SEARCH_LIMIT`` candidates; empty on short queries
            or provider failure
        """
        query = (query or "").strip()
        if len(query) < settings.SETTLEMENT_SEARCH_MIN_LENGTH:
            return []

        params: dict[str, Any] = {
            "q": query,
            "addressdetails": 1,
            "limit": 8,
        }
        if country_code:
            params["countrycodes"] = country_code.lower()

        try:
            data = await self._get_json("search", params)
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as e:
            logger.warning(f"Settlement search failed for '{query[:50]}': {e}")
            return []
        except ValueError as e:
            logger.warning(f"Settlement search response could not be parsed: {e}")
            return []

        if not isinstance(data, list):
            logger.warning("Settlement search returned an unexpected payload")
            return []

        candidates = []
        for item in data:
            candidate = self._to_candidate(item)
            if candidate is not None:
                candidates.append(candidate)
        return candidates[: settings.SETTLEMENT_SEARCH_LIMIT]

    @staticmethod
    def _to_candidate(item: Any) -> SettlementCandidate | None:
        if not isinstance(item, dict):
            return None

        kind = item.get("addresstype") or item.get("type")
        if kind not in SETTLEMENT_KINDS:
            return None

        address = item.get("address")
        if not isinstance(address, dict):
            address = {}
        name = (
            item.get("name")
            or address.get("city")
            or address.get("town")
            or address.get("village")
            or address.get("hamlet")
        )
        if not name:
            return None

        region = address.get("state")
        country = address.get("country")

        # ValidationError is a ValueError
        try:
            point = GeoPoint(
                latitude=float(item["lat"]),
                longitude=float(item["lon"]),
                source=CoordinateSource.GEOCODED,
            )
            return SettlementCandidate(
                name=name,
                display_name=", ".join(
                    str(part) for part in (name, region, country) if part
                ),
                point=point,
                kind=kind,
                region=region,
                country=country,
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"Skipping unusable search result: {e}")
            return None
