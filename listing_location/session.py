"""One listing form's location state, wired end to end.

``LocationSession`` owns the :class:`LocationSelection` and connects the
pieces: device fixes and map picks go to the coordinate reconciler, their
reverse geocoded addresses fill the dropdowns the user has not touched,
and dropdown changes are reported back to the reconciler.
"""

import asyncio
from collections.abc import Callable
from typing import Any
from uuid import uuid4

from listing_location.core.config import settings
from listing_location.core.geocoding import (
    AddressMatcher,
    ReverseGeocodeClient,
    SettlementSearchClient,
    match_named,
)
from listing_location.core.geolocation import GeoPositionProvider, GeolocationPlatform
from listing_location.core.logging import get_session_logger
from listing_location.hierarchy import (
    HierarchyClient,
    HierarchyStore,
    RequestCoordinator,
)
from listing_location.models import (
    AddressMatch,
    FetchStatus,
    GeoPoint,
    LocationSelection,
)
from listing_location.reconciler.coordinates import (
    CoordinateReconciler,
    CoordinateState,
)

AUTOFILL = "autofill"

# Selection changes that void the levels below them
LOWER_LEVELS = {
    "country": ("region", "community", "settlement"),
    "region": ("community", "settlement"),
    "community": ("settlement",),
    "settlement": (),
}

SELECTION_FIELDS = {
    "country": "country_id",
    "region": "region_id",
    "community": "community_id",
    "settlement": "settlement_name",
}


class LocationSession:
    """Location part of a listing form, from mount to submit."""

    def __init__(
        self,
        hierarchy_client: HierarchyClient | None = None,
        platform: GeolocationPlatform | None = None,
        geocoder: ReverseGeocodeClient | None = None,
        search_client: SettlementSearchClient | None = None,
        matcher: AddressMatcher | None = None,
        provider: GeoPositionProvider | None = None,
        session_id: str | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            hierarchy_client: Listing API client
            platform: Device geolocation capability, None if unsupported
            geocoder: Reverse geocoding client
            search_client: Settlement free-text search client
            matcher: Address to hierarchy matcher
            provider: Prebuilt position provider, overrides ``platform``
            session_id: Identifier bound to every log entry
        """
        self.session_id = session_id or uuid4().hex
        self.logger = get_session_logger(self.session_id)

        self.selection = LocationSelection()
        self.coordinator = RequestCoordinator()
        self.store = HierarchyStore(
            hierarchy_client or HierarchyClient(),
            self.selection,
            self.coordinator,
            search_client or SettlementSearchClient(),
        )
        self.reconciler = CoordinateReconciler(
            provider or GeoPositionProvider(platform), self.selection
        )
        self.geocoder = geocoder or ReverseGeocodeClient()
        self.matcher = matcher or AddressMatcher()

        self.last_match: AddressMatch | None = None
        self._manual_levels: set[str] = set()
        self._autofilling = False
        self._coordinates_country_id: int | None = None
        self.store.subscribe(self._on_selection_changed)

    # ------------------------------------------------------------------
    # Collaborator-facing interface
    # ------------------------------------------------------------------

    def is_resolved(self) -> bool:
        """True once country, region and coordinates are all set."""
        return self.selection.is_resolved()

    def snapshot(self) -> LocationSelection:
        """Copy of the current selection for the submission flow."""
        return self.selection.model_copy(deep=True)

    @property
    def coordinate_state(self) -> CoordinateState:
        return self.reconciler.state

    @property
    def map_center(self) -> tuple[float, float] | None:
        """Where the map widget should be centred.

        The coordinates when set, otherwise the selected country's centre
        when known.
        """
        if self.selection.coordinates is not None:
            return self.selection.coordinates.as_tuple()
        country = self.store.selected_country
        if country and country.latitude is not None and country.longitude is not None:
            return (country.latitude, country.longitude)
        return None

    # ------------------------------------------------------------------
    # Form events
    # ------------------------------------------------------------------

    async def start(self, request_device_location: bool | None = None) -> None:
        """Form mounted: load countries and optionally ask for the device fix."""
        await self.store.load_countries()
        if request_device_location is None:
            request_device_location = settings.AUTO_REQUEST_DEVICE_LOCATION
        if request_device_location:
            await self.use_device_location(True)

    async def use_device_location(self, enabled: bool) -> CoordinateState:
        """The "use my location" checkbox."""
        state = await self.reconciler.toggle_use_device_location(enabled)
        return await self._device_mode_changed(enabled, state)

    async def retry_device_location(self) -> CoordinateState:
        """Retry action of the "could not determine location" notice."""
        state = await self.reconciler.retry_device_location()
        return await self._device_mode_changed(True, state)

    async def _device_mode_changed(
        self, enabled: bool, state: CoordinateState
    ) -> CoordinateState:
        if enabled and state is CoordinateState.USING_DEVICE:
            self._coordinates_country_id = None
            await self.autofill_from_point(self.reconciler.device_point)
        elif enabled and self.reconciler.location_error is not None:
            self.logger.info(
                "device_location_unavailable",
                reason=self.reconciler.location_error.name,
            )
        self._check_consistency()
        return state

    async def choose_map_point(
        self, latitude: float, longitude: float, autofill: bool = True
    ) -> GeoPoint:
        """The map widget reported a picked point."""
        point = self.reconciler.map_point_chosen(latitude, longitude)
        self._coordinates_country_id = None
        if autofill:
            await self.autofill_from_point(point)
        self._check_consistency()
        return point

    def select_country(self, country_id: int | None) -> "asyncio.Task[bool] | None":
        return self.store.select_country(country_id)

    def select_region(self, region_id: int | None) -> "asyncio.Task[bool] | None":
        return self.store.select_region(region_id)

    def select_community(
        self, community_id: int | None
    ) -> "asyncio.Task[bool] | None":
        return self.store.select_community(community_id)

    def set_settlement_name(self, name: str) -> None:
        self.store.set_settlement_name(name)

    # ------------------------------------------------------------------
    # Auto-fill
    # ------------------------------------------------------------------

    async def autofill_from_point(self, point: GeoPoint | None) -> AddressMatch | None:
        """Fill the dropdowns from the address at ``point``.

        Levels the user chose by hand are left alone. Any failed step stops
        the chain quietly and leaves the rest for manual entry. A newer
        auto-fill or a manual country, region or community change voids
        this one.

        Returns:
            The address match, or None when nothing could be matched
        """
        if point is None:
            return None
        token = self.coordinator.issue(AUTOFILL)

        if self.store.countries.status != FetchStatus.SUCCEEDED:
            await self._autofill_step_sync(self.store.load_countries)
            if self.store.countries.status != FetchStatus.SUCCEEDED:
                return None

        raw = await self.geocoder.lookup(point)
        if not self.coordinator.accept(AUTOFILL, token):
            return None
        if raw is None:
            self.logger.info("autofill_skipped", reason="address_lookup_failed")
            return None

        match = self.matcher.match(raw, self.store.countries.items)
        if match is None:
            self.logger.info("autofill_skipped", reason="country_not_matched")
            return None

        self.last_match = match
        self._coordinates_country_id = match.country.id

        try:
            await self._fill_levels(match, token)
        except Exception:
            self.logger.exception("autofill_failed", country_id=match.country.id)

        self._check_consistency()
        self.logger.info(
            "autofill_applied",
            country_id=self.selection.country_id,
            region_id=self.selection.region_id,
            community_id=self.selection.community_id,
            settlement=self.selection.settlement_name,
        )
        return match

    async def _fill_levels(self, match: AddressMatch, token: int) -> None:
        if await self._fill_hierarchy(match, token):
            self._fill_settlement(match)

    async def _fill_hierarchy(self, match: AddressMatch, token: int) -> bool:
        """Fill country, region and community.

        Returns:
            False when the address lies outside a manually chosen country or
            the auto-fill was superseded
        """
        selection = self.selection
        store = self.store

        if "country" in self._manual_levels:
            if selection.country_id != match.country.id:
                return False
        elif (
            selection.country_id != match.country.id
            or store.regions.status != FetchStatus.SUCCEEDED
        ):
            if not await self._autofill_step(
                lambda: store.select_country(match.country.id), token
            ):
                return self.coordinator.is_current(AUTOFILL, token)

        if store.regions.status != FetchStatus.SUCCEEDED:
            return True
        if "region" not in self._manual_levels:
            region = match_named(match.region_name, store.regions.items)
            if region is None:
                return True
            if (
                region.id != selection.region_id
                or store.communities.status != FetchStatus.SUCCEEDED
            ):
                if not await self._autofill_step(
                    lambda: store.select_region(region.id), token
                ):
                    return self.coordinator.is_current(AUTOFILL, token)

        if (
            selection.region_id is None
            or store.communities.status != FetchStatus.SUCCEEDED
            or "community" in self._manual_levels
        ):
            return True
        community = match_named(match.community_name, store.communities.items)
        if community is not None and community.id != selection.community_id:
            if not await self._autofill_step(
                lambda: store.select_community(community.id), token
            ):
                return self.coordinator.is_current(AUTOFILL, token)
        return True

    def _fill_settlement(self, match: AddressMatch) -> None:
        if "settlement" in self._manual_levels:
            return
        store = self.store
        settlement = match_named(match.settlement_name, store.settlements.items)
        if settlement is not None:
            self._autofill_step_sync(lambda: store.select_settlement(settlement.id))
        elif match.settlement_name:
            self._autofill_step_sync(
                lambda: store.set_settlement_name(match.settlement_name)
            )

    async def _autofill_step(
        self, action: Callable[[], "asyncio.Task[bool] | None"], token: int
    ) -> bool:
        """Run a store mutator as auto-fill and wait for the load it starts."""
        if not self.coordinator.is_current(AUTOFILL, token):
            return False
        task = self._autofill_step_sync(action)
        loaded = await task if task is not None else True
        return loaded and self.coordinator.accept(AUTOFILL, token)

    def _autofill_step_sync(self, action: Callable[[], Any]) -> Any:
        self._autofilling = True
        try:
            return action()
        finally:
            self._autofilling = False

    # ------------------------------------------------------------------
    # Hierarchy → coordinates feedback
    # ------------------------------------------------------------------

    def _on_selection_changed(self, change: str) -> None:
        if change not in LOWER_LEVELS:
            # level fetch completions
            return

        manual = not self._autofilling
        if manual and change != "settlement":
            # The user took over a level the auto-fill may still be walking
            self.coordinator.invalidate(AUTOFILL)

        self._manual_levels.difference_update(LOWER_LEVELS[change])
        value = getattr(self.selection, SELECTION_FIELDS[change])
        if manual and value not in (None, ""):
            self._manual_levels.add(change)
        else:
            self._manual_levels.discard(change)

        if change == "country":
            self._check_consistency()

    def _check_consistency(self) -> None:
        selected = self.selection.country_id
        resolved = self._coordinates_country_id
        consistent = selected is None or resolved is None or selected == resolved
        self.reconciler.selection_changed(consistent)

