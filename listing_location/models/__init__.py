"""Location models package."""

from .location import (
    AddressMatch,
    Community,
    CoordinateSource,
    Country,
    FetchState,
    FetchStatus,
    GeoPoint,
    LocationSelection,
    RawAddress,
    Region,
    Settlement,
    SettlementCandidate,
)

__all__ = [
    "AddressMatch",
    "Community",
    "CoordinateSource",
    "Country",
    "FetchState",
    "FetchStatus",
    "GeoPoint",
    "LocationSelection",
    "RawAddress",
    "Region",
    "Settlement",
    "SettlementCandidate",
]
