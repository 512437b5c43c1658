"""Prometheus metrics for location resolution."""

from prometheus_client import REGISTRY, Counter

# Device geolocation metrics
GEOLOCATION_REQUESTS = Counter(
    "location_geolocation_requests_total",
    "Total number of device geolocation queries",
    ["outcome"],  # success, permission_denied, position_unavailable, timeout
)

# Reverse geocoding metrics
REVERSE_GEOCODE_REQUESTS = Counter(
    "location_reverse_geocode_requests_total",
    "Total number of reverse geocoding lookups",
    ["outcome"],  # success, failed
)

# Hierarchy loading metrics
HIERARCHY_FETCHES = Counter(
    "location_hierarchy_fetches_total",
    "Total number of hierarchy level fetches applied to the store",
    ["level", "outcome"],  # succeeded, failed
)

STALE_RESPONSES_DISCARDED = Counter(
    "location_stale_responses_discarded_total",
    "Responses dropped because a newer request superseded them",
    ["level"],
)

# Address matching metrics
ADDRESS_MATCHES = Counter(
    "location_address_matches_total",
    "Total number of reverse geocoded addresses matched to a country",
    ["match_type"],  # iso, alias, name, none
)


def register_metrics() -> None:
    """Register metrics with Prometheus."""
    metrics = [
        GEOLOCATION_REQUESTS,
        REVERSE_GEOCODE_REQUESTS,
        HIERARCHY_FETCHES,
        STALE_RESPONSES_DISCARDED,
        ADDRESS_MATCHES,
    ]
    for metric in metrics:
        try:
            REGISTRY.register(metric)
        except ValueError:
            # Metric already registered
            pass


# Register metrics on module import
register_metrics()
