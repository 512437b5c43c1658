"""Reverse geocoding of a map or device point into a raw address."""

import logging

import httpx
from pydantic import ValidationError

from listing_location.core.config import settings
from listing_location.core.geocoding.base import NominatimClient
from listing_location.metrics import REVERSE_GEOCODE_REQUESTS
from listing_location.models import GeoPoint, RawAddress

logger = logging.getLogger(__name__)


class ReverseGeocodeClient(NominatimClient):
    """Looks up the address at a point with one ``/reverse`` request.

    Every failure degrades to ``None``; callers fall back to manual entry.
    There is no retry policy, a retry is simply another :meth:`lookup`.
    """

    def __init__(self, *args, zoom: int | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.zoom = settings.GEOCODER_ZOOM if zoom is None else zoom

    async def lookup(self, point: GeoPoint) -> RawAddress | None:
        """Reverse geocode a point.

        Args:
            point: Coordinates to look up

        Returns:
            RawAddress with address detail fields, or None if the lookup failed
        """
        params = {
            "lat": point.latitude,
            "lon": point.longitude,
            "zoom": self.zoom,
            "addressdetails": 1,
        }

        try:
            data = await self._get_json("reverse", params)
            address = self._parse(data)
        except httpx.TimeoutException as e:
            logger.warning(
                f"Reverse geocoding timed out for {point.latitude},{point.longitude}: {e}"
            )
            address = None
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as e:
            logger.warning(
                f"Reverse geocoding request failed for {point.latitude},{point.longitude}: "
                f"{type(e).__name__}: {e}"
            )
            address = None
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Reverse geocoding response could not be parsed: {e}")
            address = None

        REVERSE_GEOCODE_REQUESTS.labels(
            outcome="success" if address is not None else "failed"
        ).inc()
        return address

    @staticmethod
    def _parse(data: object) -> RawAddress | None:
        if not isinstance(data, dict):
            raise ValueError(
                f"Unexpected reverse geocoding payload: {type(data).__name__}"
            )

        if "error" in data:
            logger.warning(f"Reverse geocoding provider error: {data['error']}")
            return None

        address = data.get("address")
        if not isinstance(address, dict) or not address:
            logger.warning("Reverse geocoding response has no address details")
            return None

        try:
            return RawAddress.model_validate(
                {
                    **address,
                    "display_name": data.get("display_name"),
                    "lat": data.get("lat"),
                    "lon": data.get("lon"),
                }
            )
        except ValidationError as e:
            raise ValueError(f"Invalid address record: {e}") from e
