"""Device geolocation capability.

The platform query itself (a browser bridge, an OS location service, a
test double) is injected as a :class:`GeolocationPlatform`. This module
only adds timeout handling and turns every outcome into a tagged result.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError

from listing_location.core.config import settings
from listing_location.core.errors import GeoError, GeoErrorKind, PositionError
from listing_location.metrics import GEOLOCATION_REQUESTS
from listing_location.models import CoordinateSource, GeoPoint

logger = logging.getLogger(__name__)

SuccessCallback = Callable[[float, float], None]
ErrorCallback = Callable[[GeoErrorKind, str], None]


@dataclass(frozen=True)
class PositionOptions:
    """Options for a single geolocation query."""

    high_accuracy: bool = True
    timeout_ms: int = 10000
    max_age_ms: int = 0

    @classmethod
    def from_settings(cls) -> "PositionOptions":
        return cls(
            high_accuracy=settings.GEOLOCATION_HIGH_ACCURACY,
            timeout_ms=settings.GEOLOCATION_TIMEOUT_MS,
            max_age_ms=settings.GEOLOCATION_MAX_AGE_MS,
        )


class GeolocationPlatform(Protocol):
    """Callback-style device position query.

    Implementations call exactly one of ``on_success`` or ``on_error``,
    possibly after the provider has already given up waiting.
    """

    def get_current_position(
        self,
        on_success: SuccessCallback,
        on_error: ErrorCallback,
        options: PositionOptions,
    ) -> None: ...


class GeoPositionProvider:
    """Acquires the device position as a :class:`GeoPoint` or :class:`GeoError`."""

    def __init__(self, platform: GeolocationPlatform | None) -> None:
        """Initialize the provider.

        Args:
            platform: Device capability, or None where geolocation is unsupported
        """
        self.platform = platform

    async def acquire(
        self, options: PositionOptions | None = None
    ) -> GeoPoint | GeoError:
        """Query the device position once.

        Args:
            options: Query options, defaults taken from settings

        Returns:
            A device-sourced GeoPoint, or a GeoError. Never raises.
        """
        options = options or PositionOptions.from_settings()

        if self.platform is None:
            return self._record(
                GeoError(
                    GeoErrorKind.POSITION_UNAVAILABLE,
                    "Geolocation is not supported on this device",
                )
            )

        loop = asyncio.get_running_loop()
        future: asyncio.Future[GeoPoint | GeoError] = loop.create_future()

        def on_success(latitude: float, longitude: float) -> None:
            if future.done():
                logger.debug("Ignoring geolocation result delivered after timeout")
                return
            try:
                point = GeoPoint(
                    latitude=latitude,
                    longitude=longitude,
                    source=CoordinateSource.DEVICE,
                )
            except ValidationError:
                future.set_result(
                    GeoError(
                        GeoErrorKind.POSITION_UNAVAILABLE,
                        f"Invalid coordinates from device: {latitude}, {longitude}",
                    )
                )
                return
            future.set_result(point)

        def on_error(kind: GeoErrorKind, message: str = "") -> None:
            if future.done():
                logger.debug("Ignoring geolocation error delivered after timeout")
                return
            future.set_result(GeoError(GeoErrorKind(kind), message))

        try:
            self.platform.get_current_position(on_success, on_error, options)
        except PositionError as e:
            return self._record(GeoError(e.kind, e.message))
        except Exception as e:
            logger.warning(f"Geolocation platform query failed: {e}")
            return self._record(GeoError(GeoErrorKind.POSITION_UNAVAILABLE, str(e)))

        try:
            result = await asyncio.wait_for(future, timeout=options.timeout_ms / 1000)
        except asyncio.TimeoutError:
            result = GeoError(
                GeoErrorKind.TIMEOUT,
                f"No position within {options.timeout_ms}ms",
            )

        return self._record(result)

    @staticmethod
    def _record(result: GeoPoint | GeoError) -> GeoPoint | GeoError:
        if isinstance(result, GeoError):
            logger.info(f"Device location unavailable: {result.name} {result.message}")
            GEOLOCATION_REQUESTS.labels(outcome=result.name).inc()
        else:
            logger.debug(
                f"Device location acquired: {result.latitude}, {result.longitude}"
            )
            GEOLOCATION_REQUESTS.labels(outcome="success").inc()
        return result
