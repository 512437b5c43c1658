"""Shared HTTP plumbing for Nominatim-compatible geocoding providers."""

import logging
from typing import Any

import httpx

from listing_location.core.config import settings

logger = logging.getLogger(__name__)


class NominatimClient:
    """Base client for a Nominatim-compatible HTTP API.

    A caller-owned ``httpx.AsyncClient`` may be injected; otherwise a
    short-lived client is opened per request.
    """

    def __init__(
        self,
        base_url: str | None = None,
        user_agent: str | None = None,
        accept_language: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = (base_url or settings.GEOCODER_URL).rstrip("/")
        self.user_agent = user_agent or settings.GEOCODER_USER_AGENT
        self.accept_language = accept_language or settings.GEOCODER_ACCEPT_LANGUAGE
        self.timeout = settings.GEOCODER_TIMEOUT if timeout is None else timeout
        self._client = client

    @property
    def headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept": "application/json",
            "Accept-Language": self.accept_language,
        }

    async def _get_json(self, path: str, params: dict[str, Any]) -> Any:
        """Issue a single GET request and decode the JSON body.

        Raises:
            httpx.HTTPError: On transport errors or non-2xx responses
            ValueError: If the body is not valid JSON
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        params = {"format": "json", **params}

        if self._client is not None:
            response = await self._client.get(url, params=params, headers=self.headers)
        else:
            async with httpx.AsyncClient(
                headers=self.headers, timeout=httpx.Timeout(self.timeout)
            ) as client:
                response = await client.get(url, params=params)

        response.raise_for_status()
        return response.json()
