"""Cascading location hierarchy: API client, request coordination and store."""

from listing_location.hierarchy.client import HierarchyClient
from listing_location.hierarchy.coordinator import Debouncer, RequestCoordinator
from listing_location.hierarchy.store import (
    COMMUNITIES,
    COUNTRIES,
    REGIONS,
    SETTLEMENT_SEARCH,
    SETTLEMENTS,
    HierarchyStore,
)

__all__ = [
    "COMMUNITIES",
    "COUNTRIES",
    "Debouncer",
    "HierarchyClient",
    "HierarchyStore",
    "REGIONS",
    "RequestCoordinator",
    "SETTLEMENTS",
    "SETTLEMENT_SEARCH",
]
