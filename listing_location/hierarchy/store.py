"""Cascading country → region → community → settlement state.

Every loader does its bookkeeping synchronously (new generation, child
levels cleared, status set to loading) before the network call is even
scheduled, and hands back an ``asyncio.Task`` for the fetch itself. A
caller that never awaits the task still observes the invalidation
immediately, and a response is only applied while its generation is the
newest one for that level.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine, Sequence
from typing import Any

from listing_location.core.config import settings
from listing_location.core.errors import HierarchyFetchError, UnknownHierarchyItem
from listing_location.core.geocoding.matcher import normalize
from listing_location.core.geocoding.search import SettlementSearchClient
from listing_location.hierarchy.client import HierarchyClient
from listing_location.hierarchy.coordinator import Debouncer, RequestCoordinator
from listing_location.metrics import HIERARCHY_FETCHES
from listing_location.models import (
    Community,
    Country,
    FetchState,
    FetchStatus,
    LocationSelection,
    Region,
    Settlement,
    SettlementCandidate,
)

logger = logging.getLogger(__name__)

COUNTRIES = "countries"
REGIONS = "regions"
COMMUNITIES = "communities"
SETTLEMENTS = "settlements"
SETTLEMENT_SEARCH = "settlement_search"

# Levels below each level, nearest first
CHILD_LEVELS: dict[str, tuple[str, ...]] = {
    COUNTRIES: (REGIONS, COMMUNITIES, SETTLEMENTS),
    REGIONS: (COMMUNITIES, SETTLEMENTS),
    COMMUNITIES: (SETTLEMENTS,),
    SETTLEMENTS: (),
}

ChangeListener = Callable[[str], None]


class HierarchyStore:
    """Holds the hierarchy collections and the dropdown selections."""

    def __init__(
        self,
        client: HierarchyClient,
        selection: LocationSelection | None = None,
        coordinator: RequestCoordinator | None = None,
        search_client: SettlementSearchClient | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            client: Listing API client
            selection: Selection to mutate, a new empty one by default
            coordinator: Generation counters, a private instance by default
            search_client: Settlement free-text search, optional
        """
        self.client = client
        self.selection = selection or LocationSelection()
        self.coordinator = coordinator or RequestCoordinator()
        self.search_client = search_client

        self.countries: FetchState[Country] = FetchState[Country]()
        self.regions: FetchState[Region] = FetchState[Region]()
        self.communities: FetchState[Community] = FetchState[Community]()
        self.settlements: FetchState[Settlement] = FetchState[Settlement]()
        self.settlement_search: FetchState[SettlementCandidate] = FetchState[
            SettlementCandidate
        ]()

        self._search_debouncer: Debouncer[list[SettlementCandidate]] = Debouncer(
            self.coordinator,
            SETTLEMENT_SEARCH,
            settings.SETTLEMENT_SEARCH_DEBOUNCE_MS / 1000,
        )
        self._last_parent: dict[str, int | None] = {}
        self._listeners: list[ChangeListener] = []
        self._tasks: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def state(self, level: str) -> FetchState[Any]:
        """Return the fetch state of a level by name."""
        return {
            COUNTRIES: self.countries,
            REGIONS: self.regions,
            COMMUNITIES: self.communities,
            SETTLEMENTS: self.settlements,
            SETTLEMENT_SEARCH: self.settlement_search,
        }[level]

    def subscribe(self, listener: ChangeListener) -> None:
        """Register a callback receiving the name of each changed selection."""
        self._listeners.append(listener)

    def _notify(self, change: str) -> None:
        for listener in list(self._listeners):
            listener(change)

    @property
    def selected_country(self) -> Country | None:
        return _find(self.countries.items, self.selection.country_id)

    @property
    def selected_region(self) -> Region | None:
        return _find(self.regions.items, self.selection.region_id)

    @property
    def selected_community(self) -> Community | None:
        return _find(self.communities.items, self.selection.community_id)

    # ------------------------------------------------------------------
    # Loaders
    # ------------------------------------------------------------------

    def load_countries(self) -> "asyncio.Task[bool]":
        """Load the country reference list.

        A reload drops the selected country along with every level below it.
        """
        had_country = self.selection.country_id is not None
        task = self._start_load(COUNTRIES, None, self.client.get_countries)
        if had_country:
            self._cancel_search()
            self._notify("country")
        return task

    def load_regions(self, country_id: int) -> "asyncio.Task[bool]":
        """Load the regions of the selected country.

        Raises:
            ValueError: If ``country_id`` is not the selected country
        """
        self._require_selected("country", self.selection.country_id, country_id)
        return self._start_load(
            REGIONS, country_id, lambda: self.client.get_regions(country_id)
        )

    def load_communities(self, region_id: int) -> "asyncio.Task[bool]":
        """Load the communities of the selected region."""
        self._require_selected("region", self.selection.region_id, region_id)
        return self._start_load(
            COMMUNITIES, region_id, lambda: self.client.get_communities(region_id)
        )

    def load_settlements(self, community_id: int) -> "asyncio.Task[bool]":
        """Load the settlements of the selected community."""
        self._require_selected("community", self.selection.community_id, community_id)
        return self._start_load(
            SETTLEMENTS,
            community_id,
            lambda: self.client.get_settlements(community_id),
        )

    def retry(self, level: str) -> "asyncio.Task[bool] | None":
        """Re-issue the last load of a level.

        Returns:
            The new load task, or None if the level was never loaded
        """
        if level not in self._last_parent:
            return None
        parent_id = self._last_parent[level]
        if level == COUNTRIES:
            return self.load_countries()
        if parent_id is None:
            return None
        loaders = {
            REGIONS: self.load_regions,
            COMMUNITIES: self.load_communities,
            SETTLEMENTS: self.load_settlements,
        }
        return loaders[level](parent_id)

    def _start_load(
        self,
        level: str,
        parent_id: int | None,
        fetch: Callable[[], Awaitable[Sequence[Any]]],
    ) -> "asyncio.Task[bool]":
        token = self.coordinator.issue(level)
        self._clear_level(level)
        for child in CHILD_LEVELS[level]:
            self._clear_level(child, invalidate=True)

        state = self.state(level)
        state.request_generation = token
        state.status = FetchStatus.LOADING
        self._last_parent[level] = parent_id

        return self._spawn(self._complete_load(level, token, fetch))

    async def _complete_load(
        self,
        level: str,
        token: int,
        fetch: Callable[[], Awaitable[Sequence[Any]]],
    ) -> bool:
        try:
            items = await fetch()
        except HierarchyFetchError as e:
            if not self.coordinator.accept(level, token):
                return False
            state = self.state(level)
            state.status = FetchStatus.FAILED
            state.error = e.message
            HIERARCHY_FETCHES.labels(level=level, outcome="failed").inc()
            self._notify(level)
            return False

        if not self.coordinator.accept(level, token):
            return False

        state = self.state(level)
        state.items = list(items)
        state.status = FetchStatus.SUCCEEDED
        state.error = None
        HIERARCHY_FETCHES.labels(level=level, outcome="succeeded").inc()
        logger.debug(f"Loaded {len(state.items)} {level}")
        self._notify(level)
        return True

    def _clear_level(self, level: str, invalidate: bool = False) -> None:
        if invalidate:
            self.coordinator.invalidate(level)
            self.state(level).request_generation = self.coordinator.current(level)
        self.state(level).reset()

        if level == COUNTRIES:
            self.selection.country_id = None
        elif level == REGIONS:
            self.selection.region_id = None
        elif level == COMMUNITIES:
            self.selection.community_id = None
        elif level == SETTLEMENTS:
            self.selection.settlement_id = None
            self.selection.settlement_name = ""

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> "asyncio.Task[Any]":
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ------------------------------------------------------------------
    # Selection mutators
    # ------------------------------------------------------------------

    def select_country(self, country_id: int | None) -> "asyncio.Task[bool] | None":
        """Select a country and start loading its regions.

        Selecting None returns every lower level to idle.

        Raises:
            UnknownHierarchyItem: If countries are loaded and the id is unknown
        """
        if country_id is not None and self.countries.status == FetchStatus.SUCCEEDED:
            self._require_item("country", self.countries.items, country_id)

        self.selection.country_id = country_id
        self._cancel_search()

        if country_id is None:
            for level in CHILD_LEVELS[COUNTRIES]:
                self._clear_level(level, invalidate=True)
            self._notify("country")
            return None

        task = self.load_regions(country_id)
        self._notify("country")
        return task

    def select_region(self, region_id: int | None) -> "asyncio.Task[bool] | None":
        """Select a region and start loading its communities."""
        if region_id is not None:
            self._require_item("region", self.regions.items, region_id)

        self.selection.region_id = region_id
        if region_id is None:
            for level in CHILD_LEVELS[REGIONS]:
                self._clear_level(level, invalidate=True)
            self._notify("region")
            return None

        task = self.load_communities(region_id)
        self._notify("region")
        return task

    def select_community(
        self, community_id: int | None
    ) -> "asyncio.Task[bool] | None":
        """Select a community and start loading its settlements."""
        if community_id is not None:
            self._require_item("community", self.communities.items, community_id)

        self.selection.community_id = community_id
        if community_id is None:
            self._clear_level(SETTLEMENTS, invalidate=True)
            self._notify("community")
            return None

        task = self.load_settlements(community_id)
        self._notify("community")
        return task

    def select_settlement(self, settlement_id: int | None) -> None:
        """Select a settlement from the authoritative list."""
        if settlement_id is None:
            self.selection.settlement_id = None
            self.selection.settlement_name = ""
        else:
            settlement = self._require_item(
                "settlement", self.settlements.items, settlement_id
            )
            self.selection.settlement_id = settlement.id
            self.selection.settlement_name = settlement.name
        self._notify("settlement")

    def set_settlement_name(self, name: str) -> None:
        """Set the settlement as free text.

        A name equal to a loaded settlement links that settlement's id.
        """
        name = (name or "").strip()
        wanted = normalize(name)
        match = next(
            (
                s
                for s in self.settlements.items
                if wanted and normalize(s.name) == wanted
            ),
            None,
        )
        self.selection.settlement_name = name
        self.selection.settlement_id = match.id if match else None
        self._notify("settlement")

    # ------------------------------------------------------------------
    # Settlement search
    # ------------------------------------------------------------------

    def search_settlements(self, query: str) -> "asyncio.Task[bool] | None":
        """Debounced free-text settlement search.

        Every call re-arms the debounce timer; only the newest query's
        results are applied.

        Returns:
            Task resolving to True if this query's results were applied, or
            None when the query is too short or search is unavailable
        """
        query = (query or "").strip()
        if (
            self.search_client is None
            or len(query) < settings.SETTLEMENT_SEARCH_MIN_LENGTH
        ):
            self._cancel_search()
            return None

        country = self.selected_country
        country_code = country.iso_code if country else None
        search_client = self.search_client
        self.settlement_search.status = FetchStatus.LOADING

        def apply(results: list[SettlementCandidate]) -> None:
            self.settlement_search.items = results
            self.settlement_search.status = FetchStatus.SUCCEEDED

        task = self._search_debouncer.schedule(
            lambda: search_client.search(query, country_code), apply
        )
        self.settlement_search.request_generation = self.coordinator.current(
            SETTLEMENT_SEARCH
        )
        return task

    def choose_settlement_candidate(self, candidate: SettlementCandidate) -> None:
        """Take a search suggestion as the settlement name."""
        self._cancel_search()
        self.set_settlement_name(candidate.name)

    def _cancel_search(self) -> None:
        self._search_debouncer.cancel()
        self.settlement_search.reset()
        self.settlement_search.request_generation = self.coordinator.current(
            SETTLEMENT_SEARCH
        )

    # ------------------------------------------------------------------
    # Integrity helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_selected(level: str, selected: int | None, requested: int) -> None:
        if selected != requested:
            raise ValueError(
                f"Cannot load children of {level} {requested}: "
                f"selected {level} is {selected}"
            )

    @staticmethod
    def _require_item(level: str, items: Sequence[Any], item_id: int) -> Any:
        item = _find(items, item_id)
        if item is None:
            raise UnknownHierarchyItem(level, item_id)
        return item


def _find(items: Sequence[Any], item_id: int | None) -> Any:
    if item_id is None:
        return None
    return next((item for item in items if item.id == item_id), None)
