"""Application configuration."""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings.

    Environment variables will be loaded and validated using Pydantic.
    """

    app_name: str = "Listing Location"
    version: str = "0.1.0"

    # Listing API Settings
    LISTING_API_URL: str = "http://localhost:8000/api"
    HIERARCHY_FETCH_TIMEOUT: float | None = Field(
        default=None, ge=0
    )  # None disables the client timeout; the form offers a manual retry

    # Reverse Geocoding Settings
    GEOCODER_URL: str = "https://nominatim.openstreetmap.org"
    GEOCODER_USER_AGENT: str = "listing-location/0.1"
    GEOCODER_ACCEPT_LANGUAGE: str = "uk,en"
    GEOCODER_TIMEOUT: float = Field(default=10.0, ge=0)
    GEOCODER_ZOOM: int = Field(default=18, ge=0, le=18)

    # Device Geolocation Settings
    GEOLOCATION_HIGH_ACCURACY: bool = True
    GEOLOCATION_TIMEOUT_MS: int = Field(default=10000, ge=0)
    GEOLOCATION_MAX_AGE_MS: int = Field(default=300000, ge=0)  # 5 minutes
    AUTO_REQUEST_DEVICE_LOCATION: bool = True

    # Reconciliation Settings
    COORDINATE_TOLERANCE_METERS: float = Field(default=1.0, ge=0)

    # Settlement Search Settings
    SETTLEMENT_SEARCH_DEBOUNCE_MS: int = Field(default=500, ge=0)
    SETTLEMENT_SEARCH_MIN_LENGTH: int = Field(default=2, ge=1)
    SETTLEMENT_SEARCH_LIMIT: int = Field(default=6, ge=1)

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",  # Allow extra fields in environment
    )

    @model_validator(mode="after")
    def strip_trailing_slashes(self) -> "Settings":
        """Normalize service base URLs."""
        self.LISTING_API_URL = self.LISTING_API_URL.rstrip("/")
        self.GEOCODER_URL = self.GEOCODER_URL.rstrip("/")
        return self


# Create settings instance
settings = Settings()
