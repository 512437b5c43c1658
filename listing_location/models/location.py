"""Location hierarchy and coordinate models for the listing location form."""

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

T = TypeVar("T")


class LocationBaseModel(BaseModel):
    """Base model accepting the listing API's camelCase keys."""

    model_config = ConfigDict(
        populate_by_name=True,
        validate_assignment=True,
        extra="ignore",
    )


class Country(LocationBaseModel):
    """Country reference record, loaded once per form."""

    id: int = Field(..., description="Country identifier")
    name: str = Field(..., description="Display name of the country")
    iso_code: str = Field(
        ...,
        validation_alias=AliasChoices("iso_code", "isoCode", "code"),
        description="ISO 3166-1 alpha-2 code",
        examples=["UA"],
    )
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class Region(LocationBaseModel):
    """First-level administrative division (oblast, state, voivodeship)."""

    id: int
    name: str
    country_id: int = Field(
        ..., validation_alias=AliasChoices("country_id", "countryId")
    )


class Community(LocationBaseModel):
    """Second-level administrative division (hromada, municipality)."""

    id: int
    name: str
    region_id: int = Field(..., validation_alias=AliasChoices("region_id", "regionId"))


class Settlement(LocationBaseModel):
    """Populated place inside a community."""

    id: int
    name: str = Field(..., validation_alias=AliasChoices("name", "settlement"))
    community_id: int = Field(
        ..., validation_alias=AliasChoices("community_id", "communityId")
    )
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class CoordinateSource(str, Enum):
    """Where a coordinate pair came from."""

    DEVICE = "device"
    MANUAL = "manual"
    GEOCODED = "geocoded"


class GeoPoint(BaseModel):
    """A latitude/longitude pair tagged with its source."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    source: CoordinateSource

    def as_tuple(self) -> tuple[float, float]:
        """Return the point as a ``(latitude, longitude)`` tuple."""
        return (self.latitude, self.longitude)

    def with_source(self, source: CoordinateSource) -> "GeoPoint":
        return self.model_copy(update={"source": source})


class FetchStatus(str, Enum):
    """Load status of one hierarchy level."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class FetchState(BaseModel, Generic[T]):
    """Items and fetch bookkeeping for one hierarchy level."""

    status: FetchStatus = FetchStatus.IDLE
    items: list[T] = Field(default_factory=list)
    error: str | None = None
    request_generation: int = 0

    def reset(self) -> None:
        """Return the level to idle with no items."""
        self.status = FetchStatus.IDLE
        self.items = []
        self.error = None


class RawAddress(BaseModel):
    """Address record returned by the reverse geocoding provider.

    Mirrors the Nominatim ``address`` object. Unknown keys are kept so
    provider-specific fields such as ``ISO3166-2-lvl4`` stay reachable
    through :meth:`get`.
    """

    model_config = ConfigDict(extra="allow")

    country: str | None = None
    country_code: str | None = None
    state: str | None = None
    region: str | None = None
    province: str | None = None
    county: str | None = None
    district: str | None = None
    municipality: str | None = None
    city_district: str | None = None
    suburb: str | None = None
    city: str | None = None
    town: str | None = None
    village: str | None = None
    hamlet: str | None = None
    locality: str | None = None
    postcode: str | None = None
    road: str | None = None
    display_name: str | None = None
    lat: float | None = None
    lon: float | None = None

    def get(self, key: str) -> str | None:
        """Return a field by its provider key, including extra keys."""
        value: Any = getattr(self, key, None)
        if value is None and self.model_extra:
            value = self.model_extra.get(key)
        if value is None:
            return None
        text = str(value).strip()
        return text or None


class AddressMatch(BaseModel):
    """Best-effort mapping of a raw address onto the known hierarchy."""

    country: Country
    region_name: str = ""
    community_name: str = ""
    settlement_name: str = ""


class SettlementCandidate(BaseModel):
    """A settlement suggestion returned by free-text search."""

    name: str
    display_name: str
    point: GeoPoint
    kind: str = "village"
    region: str | None = None
    country: str | None = None


class LocationSelection(BaseModel):
    """The aggregate value the listing form submits.

    Created empty when the form mounts and mutated only through
    :class:`~listing_location.hierarchy.store.HierarchyStore` and
    :class:`~listing_location.reconciler.coordinates.CoordinateReconciler`.
    """

    country_id: int | None = None
    region_id: int | None = None
    community_id: int | None = None
    settlement_id: int | None = None
    settlement_name: str = ""
    coordinates: GeoPoint | None = None
    use_device_location: bool = False

    def is_resolved(self) -> bool:
        """Whether country, region and coordinates are all set."""
        return (
            self.country_id is not None
            and self.region_id is not None
            and self.coordinates is not None
        )
