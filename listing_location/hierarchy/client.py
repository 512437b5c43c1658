"""HTTP client for the listing API's location hierarchy endpoints."""

import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from listing_location.core.config import settings
from listing_location.core.errors import HierarchyFetchError
from listing_location.models import Community, Country, Region, Settlement

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

# Fallback messages when the server gives none
DEFAULT_ERROR_MESSAGES = {
    "countries": "Failed to load countries",
    "regions": "Failed to load regions",
    "communities": "Failed to load communities",
    "settlements": "Failed to load settlements",
}


class HierarchyClient:
    """Reads countries, regions, communities and settlements.

    Every endpoint answers ``{"data": [...]}``. Failures are raised as
    :class:`HierarchyFetchError` carrying a message fit for display next
    to the failed dropdown.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: API root, defaults to ``settings.LISTING_API_URL``
            timeout: Request timeout in seconds; None waits indefinitely
            client: Optional caller-owned httpx client
        """
        self.base_url = (base_url or settings.LISTING_API_URL).rstrip("/")
        self.timeout = settings.HIERARCHY_FETCH_TIMEOUT if timeout is None else timeout
        self._client = client

    async def get_countries(self) -> list[Country]:
        items = await self._fetch("countries", "/countries")
        return self._parse("countries", Country, items)

    async def get_regions(self, country_id: int) -> list[Region]:
        items = await self._fetch("regions", "/regions", {"countryId": country_id})
        return self._parse("regions", Region, items, "countryId", country_id)

    async def get_communities(self, region_id: int) -> list[Community]:
        items = await self._fetch(
            "communities", "/communities", {"regionId": region_id}
        )
        return self._parse("communities", Community, items, "regionId", region_id)

    async def get_settlements(self, community_id: int) -> list[Settlement]:
        items = await self._fetch(
            "settlements", "/locations", {"communityId": community_id}
        )
        return self._parse(
            "settlements", Settlement, items, "communityId", community_id
        )

    async def _fetch(
        self, level: str, path: str, params: dict[str, Any] | None = None
    ) -> list[Any]:
        url = f"{self.base_url}{path}"
        default_message = DEFAULT_ERROR_MESSAGES[level]

        try:
            if self._client is not None:
                response = await self._client.get(url, params=params)
            else:
                async with httpx.AsyncClient(
                    headers={"Accept": "application/json"},
                    timeout=httpx.Timeout(self.timeout),
                ) as client:
                    response = await client.get(url, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            message = _server_message(e.response) or default_message
            logger.warning(
                f"Fetching {level} failed with HTTP {e.response.status_code}: {message}"
            )
            raise HierarchyFetchError(level, message) from e
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as e:
            logger.warning(f"Fetching {level} failed: {type(e).__name__}: {e}")
            raise HierarchyFetchError(level, default_message) from e
        except ValueError as e:
            logger.warning(f"Fetching {level} returned invalid JSON: {e}")
            raise HierarchyFetchError(level, default_message) from e

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            logger.warning(f"Fetching {level} returned no data list")
            raise HierarchyFetchError(level, default_message)
        return data

    @staticmethod
    def _parse(
        level: str,
        model: type[M],
        items: list[Any],
        parent_key: str | None = None,
        parent_id: int | None = None,
    ) -> list[M]:
        """Validate items, stamping and enforcing the requested parent id."""
        parsed: list[M] = []
        for item in items:
            if not isinstance(item, dict):
                raise HierarchyFetchError(level, DEFAULT_ERROR_MESSAGES[level])

            if parent_key is not None:
                item_parent = item.get(parent_key)
                if item_parent is None:
                    item = {**item, parent_key: parent_id}
                elif str(item_parent) != str(parent_id):
                    logger.warning(
                        f"Dropping {level} item {item.get('id')} with "
                        f"{parent_key}={item_parent}, expected {parent_id}"
                    )
                    continue

            try:
                parsed.append(model.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Invalid {level} item {item!r}: {e}")
                raise HierarchyFetchError(level, DEFAULT_ERROR_MESSAGES[level]) from e
        return parsed


def _server_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"] or None
    return None
