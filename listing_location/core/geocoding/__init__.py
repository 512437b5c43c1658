"""Geocoding for the location form.

This package provides:
- Reverse geocoding of a point into a raw address
- Free-text settlement search
- Matching of raw addresses onto the known country/region hierarchy
"""

from listing_location.core.geocoding.matcher import (
    COUNTRY_ALIASES,
    AddressMatcher,
    match_named,
    normalize,
    strip_admin_suffix,
)
from listing_location.core.geocoding.reverse import ReverseGeocodeClient
from listing_location.core.geocoding.search import SettlementSearchClient

__all__ = [
    "AddressMatcher",
    "COUNTRY_ALIASES",
    "ReverseGeocodeClient",
    "SettlementSearchClient",
    "match_named",
    "normalize",
    "strip_admin_suffix",
]
