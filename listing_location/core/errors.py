"""Error types for location resolution."""

from dataclasses import dataclass
from enum import IntEnum


class LocationError(Exception):
    """Base class for location resolution errors."""


class GeoErrorKind(IntEnum):
    """Device geolocation failure kinds, numbered like the platform codes."""

    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3


@dataclass(frozen=True)
class GeoError:
    """Tagged geolocation failure.

    Returned, never raised, by
    :meth:`~listing_location.core.geolocation.GeoPositionProvider.acquire`.
    """

    kind: GeoErrorKind
    message: str = ""

    @property
    def name(self) -> str:
        return self.kind.name.lower()


class PositionError(LocationError):
    """Raised by a geolocation platform adapter when a query fails."""

    def __init__(self, kind: GeoErrorKind, message: str = "") -> None:
        super().__init__(message or kind.name)
        self.kind = kind
        self.message = message


class HierarchyFetchError(LocationError):
    """A hierarchy level could not be loaded from the listing API."""

    def __init__(self, level: str, message: str) -> None:
        super().__init__(message)
        self.level = level
        self.message = message


class UnknownHierarchyItem(LocationError, ValueError):
    """A selection referenced an id that is not in the loaded items."""

    def __init__(self, level: str, item_id: int) -> None:
        super().__init__(f"Unknown {level} id: {item_id}")
        self.level = level
        self.item_id = item_id
