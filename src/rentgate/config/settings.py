"""Application settings loaded from environment variables / .env file.

Hey future me - every section is its own BaseSettings with its own env prefix, so
RENTMAN_TOKEN, CLOUDINARY_API_KEY, CACHE_MAX_SIZE etc. all work without the nested
delimiter dance. The top-level Settings just groups them. get_settings() is cached,
tests should build Settings(...) directly instead of touching the environment.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rentgate.domain.exceptions import ConfigurationError


class RentmanSettings(BaseSettings):
    """Upstream Rentman advertising API."""

    model_config = SettingsConfigDict(
        env_prefix="RENTMAN_", env_file=".env", extra="ignore"
    )

    base_url: str = Field(default="https://www.rentman.online")
    token: str = Field(default="", description="Static API token sent as 'token' header")
    timeout: float = Field(default=30.0, gt=0, description="Per-request timeout (s)")
    retries: int = Field(default=3, ge=0, le=10)
    retry_delay: float = Field(
        default=1.0, ge=0, description="Base backoff delay (s), doubled per attempt"
    )


class CloudinarySettings(BaseSettings):
    """Cloudinary image CDN."""

    model_config = SettingsConfigDict(
        env_prefix="CLOUDINARY_", env_file=".env", extra="ignore"
    )

    cloud_name: str = ""
    api_key: str = ""
    api_secret: str = ""
    folder: str = "rentman-properties"
    secure: bool = True


class CacheSettings(BaseSettings):
    """In-process response cache."""

    model_config = SettingsConfigDict(
        env_prefix="CACHE_", env_file=".env", extra="ignore"
    )

    ttl_seconds: int = Field(default=3600, gt=0)
    max_size: int = Field(default=100, gt=0)
    # 0 disables the background sweep, lazy expiry on read still applies
    cleanup_interval_seconds: int = Field(default=300, ge=0)


class ImageSettings(BaseSettings):
    """Image resolution behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="IMAGES_", env_file=".env", extra="ignore"
    )

    url_ttl_seconds: int = Field(default=3600, gt=0)
    upstream_fetch_timeout: float = Field(default=20.0, gt=0)
    default_size: str = "medium"

    @field_validator("default_size")
    @classmethod
    def _known_size(cls, value: str) -> str:
        allowed = {"thumb", "medium", "large", "original"}
        if value not in allowed:
            raise ValueError(f"default_size must be one of {sorted(allowed)}")
        return value


class ObservabilitySettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_", env_file=".env", extra="ignore"
    )

    level: str = "INFO"
    json_format: bool = False


class APISettings(BaseSettings):
    """HTTP server binding."""

    model_config = SettingsConfigDict(
        env_prefix="API_", env_file=".env", extra="ignore"
    )

    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class Settings(BaseSettings):
    """Top-level application settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "rentgate"
    app_version: str = "1.0.0"
    environment: str = "development"

    rentman: RentmanSettings = Field(default_factory=RentmanSettings)
    cloudinary: CloudinarySettings = Field(default_factory=CloudinarySettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    images: ImageSettings = Field(default_factory=ImageSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    api: APISettings = Field(default_factory=APISettings)

    def validate_required(self) -> None:
        """Fail fast when credentials the gateway cannot run without are missing.

        Raises:
            ConfigurationError: listing every missing value
        """
        errors: list[str] = []
        if not self.rentman.token:
            errors.append("RENTMAN_TOKEN is required")
        if not self.rentman.base_url:
            errors.append("RENTMAN_BASE_URL is required")
        if not self.cloudinary.cloud_name:
            errors.append("CLOUDINARY_CLOUD_NAME is required")
        if not self.cloudinary.api_key:
            errors.append("CLOUDINARY_API_KEY is required")
        if not self.cloudinary.api_secret:
            errors.append("CLOUDINARY_API_SECRET is required")

        if errors:
            raise ConfigurationError(
                "Configuration validation failed: " + "; ".join(errors)
            )


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings (parsed once)."""
    return Settings()
