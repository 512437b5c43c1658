"""Ownership of the listing coordinates: device position versus map pick."""

import asyncio
import logging
from enum import Enum

from geopy.distance import geodesic

from listing_location.core.config import settings
from listing_location.core.errors import GeoError
from listing_location.core.geolocation import GeoPositionProvider, PositionOptions
from listing_location.models import CoordinateSource, GeoPoint, LocationSelection

logger = logging.getLogger(__name__)


class CoordinateState(str, Enum):
    """Which source currently owns ``LocationSelection.coordinates``."""

    UNSET = "unset"
    USING_DEVICE = "using_device"
    USING_MANUAL = "using_manual"
    DIVERGED = "diverged"


class CoordinateReconciler:
    """Decides whose coordinates are authoritative.

    In device mode the coordinates mirror the last successful device fix
    and cannot be edited. A map pick always wins: it switches to manual
    mode and becomes the coordinates. The device fix is kept in memory so
    switching back restores it without another query.

    Informational signals, none of which block submission:

    * ``location_error``: the last device query failed
    * ``divergence_meters``: device and manual points disagree in manual mode
    * ``coordinates_outside_selection``: the manual point lies in another
      country than the one selected in the dropdowns
    """

    def __init__(
        self,
        provider: GeoPositionProvider,
        selection: LocationSelection | None = None,
        tolerance_meters: float | None = None,
        options: PositionOptions | None = None,
    ) -> None:
        self.provider = provider
        self.selection = selection or LocationSelection()
        self.tolerance_meters = (
            settings.COORDINATE_TOLERANCE_METERS
            if tolerance_meters is None
            else tolerance_meters
        )
        self.options = options

        self.device_point: GeoPoint | None = None
        self.manual_point: GeoPoint | None = None
        self.location_error: GeoError | None = None
        self.divergence_meters: float | None = None
        self.coordinates_outside_selection = False

        self._device_requested = False
        self._pending: asyncio.Task[GeoPoint | GeoError] | None = None

    @property
    def state(self) -> CoordinateState:
        if self.selection.coordinates is None:
            return CoordinateState.UNSET
        if self.selection.use_device_location:
            return CoordinateState.USING_DEVICE
        if self.divergence_meters is not None:
            return CoordinateState.DIVERGED
        return CoordinateState.USING_MANUAL

    @property
    def is_acquiring(self) -> bool:
        return self._pending is not None and not self._pending.done()

    async def toggle_use_device_location(self, enabled: bool) -> CoordinateState:
        """Switch between device and manual coordinates.

        Turning device mode on adopts a known device fix immediately, or
        queries the device and adopts the result only on success. On failure
        the previous state is kept and ``location_error`` is set.
        """
        if not enabled:
            self._device_requested = False
            self.selection.use_device_location = False
            self.selection.coordinates = self.manual_point
            self._check_divergence()
            return self.state

        self._device_requested = True
        if self.device_point is not None:
            self._adopt_device_point()
            return self.state

        await self.refresh_device_location()
        return self.state

    async def retry_device_location(self) -> CoordinateState:
        """Retry action offered with the "could not determine location" notice."""
        self.device_point = None
        return await self.toggle_use_device_location(True)

    async def refresh_device_location(self) -> GeoPoint | GeoError:
        """Query the device, sharing one in-flight query between callers."""
        if self._pending is None or self._pending.done():
            self._pending = asyncio.create_task(self._acquire())
        return await asyncio.shield(self._pending)

    async def _acquire(self) -> GeoPoint | GeoError:
        result = await self.provider.acquire(self.options)
        if isinstance(result, GeoError):
            self.location_error = result
            if not self.selection.use_device_location:
                self._device_requested = False
            return result

        self.location_error = None
        self.device_location_resolved(result)
        return result

    def device_location_resolved(self, point: GeoPoint) -> None:
        """Record a device fix.

        While device mode is wanted the fix becomes the coordinates;
        otherwise it is only cached.
        """
        if point.source is not CoordinateSource.DEVICE:
            point = point.with_source(CoordinateSource.DEVICE)
        self.device_point = point

        if self._device_requested:
            self._adopt_device_point()
        else:
            logger.debug("Device location cached while in manual mode")
            self._check_divergence()

    def map_point_chosen(self, latitude: float, longitude: float) -> GeoPoint:
        """Apply an explicit map pick, leaving device mode.

        Raises:
            pydantic.ValidationError: If the coordinates are out of range
        """
        point = GeoPoint(
            latitude=latitude, longitude=longitude, source=CoordinateSource.MANUAL
        )
        self.manual_point = point
        self._device_requested = False
        self.selection.use_device_location = False
        self.selection.coordinates = point
        self.coordinates_outside_selection = False
        self._check_divergence()
        return point

    def selection_changed(self, consistent: bool) -> None:
        """Feedback from the dropdowns about the current coordinates.

        Args:
            consistent: False when the selected country differs from the
                country the coordinates were resolved into
        """
        self.coordinates_outside_selection = (
            not consistent
            and not self.selection.use_device_location
            and self.selection.coordinates is not None
        )

    def _adopt_device_point(self) -> None:
        self.selection.use_device_location = True
        self.selection.coordinates = self.device_point
        self.location_error = None
        self.divergence_meters = None
        self.coordinates_outside_selection = False

    def _check_divergence(self) -> None:
        self.divergence_meters = None
        if self.selection.use_device_location:
            return
        if self.device_point is None or self.manual_point is None:
            return

        distance = geodesic(
            self.device_point.as_tuple(), self.manual_point.as_tuple()
        ).meters
        if distance > self.tolerance_meters:
            self.divergence_meters = distance
            logger.debug(f"Manual point is {distance:.0f}m from device location")
