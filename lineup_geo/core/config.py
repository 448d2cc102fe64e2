"""Application configuration."""

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

GEOCODING_PROVIDERS = ("nominatim", "arcgis", "google")


class Settings(BaseSettings):
    """
    Application settings.

    Environment variables will be loaded and validated using Pydantic.
    """

    app_name: str = "Lineup Geo"
    version: str = "0.1.0"

    # Database Settings
    DATABASE_URL: str = "sqlite:///./lineup.db"

    # Redis Settings (geocoding cache, disabled when unset)
    REDIS_URL: str | None = None

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    # Geocoding Settings
    GEOCODING_PROVIDER: str = "nominatim"
    GEOCODING_ENABLE_FALLBACK: bool = True
    GEOCODING_CACHE_TTL: int = Field(default=2592000, ge=0)  # 30 days
    GEOCODING_MAX_RETRIES: int = Field(default=3, ge=1)
    GEOCODING_BACKOFF_SECONDS: float = Field(default=1.1, ge=0)
    GEOCODING_TIMEOUT: int = Field(default=10, gt=0)
    GEOCODING_RATE_LIMIT: float = Field(default=0.5, ge=0)  # ArcGIS / Google
    NOMINATIM_RATE_LIMIT: float = Field(default=1.1, ge=0)  # 1 request per second
    NOMINATIM_USER_AGENT: str = "LineupApp/1.0"

    # API Keys
    GOOGLE_GEOCODING_API_KEY: str | None = None

    # Region profile (JSON); built-in New Orleans profile when unset
    REGION_PROFILE_PATH: str | None = None
    # Seed for the repair search, unseeded when unset
    REPAIR_SEED: int | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",  # Allow extra fields in environment
    )

    @field_validator("GEOCODING_PROVIDER")
    @classmethod
    def validate_provider(cls, value: str) -> str:
        """Normalize and validate the primary geocoding provider."""
        provider = value.strip().lower()
        if provider not in GEOCODING_PROVIDERS:
            raise ValueError(
                f"Unknown geocoding provider '{value}', "
                f"expected one of {', '.join(GEOCODING_PROVIDERS)}"
            )
        return provider

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Normalize the log level name."""
        return value.strip().upper()

    @model_validator(mode="after")
    def require_google_key(self) -> "Settings":
        """Google geocoding cannot run without an API key."""
        if self.GEOCODING_PROVIDER == "google" and not self.GOOGLE_GEOCODING_API_KEY:
            raise ValueError(
                "GOOGLE_GEOCODING_API_KEY is required when GEOCODING_PROVIDER=google"
            )
        return self

    @model_validator(mode="after")
    def use_test_configs_for_testing(self) -> "Settings":
        """Use an in-memory database for tests to ensure isolation."""
        import os

        if os.getenv("TESTING") == "true":
            test_database_url = os.getenv("TEST_DATABASE_URL")
            self.DATABASE_URL = test_database_url or "sqlite://"
        return self


# Create settings instance
settings = Settings()
