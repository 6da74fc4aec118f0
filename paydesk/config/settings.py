"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from paydesk.config.constants import (
    API_REQUEST_TIMEOUT_SECONDS,
    BULK_POLL_INITIAL_DELAY_SECONDS,
    BULK_POLL_INTERVAL_SECONDS,
    BULK_POLL_MAX_ATTEMPTS,
    DEFAULT_CURRENCY,
    DEFAULT_GEOGRAPHIC_REGION,
    DEFAULT_WALLET_TYPE,
)

APP_ENVIRONMENTS = ("development", "staging", "production")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment selects which backend URL is used
    app_env: str = "development"

    # Payment backend
    api_url: str = ""
    production_api_url: str | None = None
    staging_api_url: str | None = None
    dev_api_url: str | None = None

    # Disbursement gateways used by single transfers
    sandbox_url: str = "https://sandbox.rukapay.net"
    wallet_api_url: str | None = None

    # Credentials are issued by the auth layer, we only forward them
    access_token: str | None = None
    user_id: str | None = None
    merchant_id: str | None = None
    merchant_name: str | None = None

    request_timeout_seconds: float = Field(
        default=API_REQUEST_TIMEOUT_SECONDS,
        gt=0,
        description="Total timeout of a single backend HTTP call in seconds",
    )
    default_currency: str = DEFAULT_CURRENCY
    wallet_type: str = DEFAULT_WALLET_TYPE
    geographic_region: str = DEFAULT_GEOGRAPHIC_REGION

    # Bulk status polling
    bulk_poll_interval_seconds: float = Field(
        default=BULK_POLL_INTERVAL_SECONDS,
        ge=0,
        description="Delay between bulk status polls in seconds",
    )
    bulk_poll_initial_delay_seconds: float = Field(
        default=BULK_POLL_INITIAL_DELAY_SECONDS,
        ge=0,
        description="Delay before the first bulk status poll in seconds",
    )
    bulk_poll_max_attempts: int = Field(
        default=BULK_POLL_MAX_ATTEMPTS,
        ge=1,
        description="Maximum number of bulk status polls before timing out",
    )

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Normalize environment name, unknown values fall back to development."""
        v = (v or "").strip().lower()
        return v if v in APP_ENVIRONMENTS else "development"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}")
        return v_upper

    @property
    def backend_url(self) -> str:
        """Backend base URL for the current environment."""
        if self.app_env == "production":
            url = self.production_api_url or self.api_url
        elif self.app_env == "staging":
            url = self.staging_api_url or self.api_url
        else:
            url = self.dev_api_url or self.api_url
        return url.rstrip("/")

    @property
    def wallet_gateway_url(self) -> str:
        """Base URL of the internal wallet gateway."""
        return (self.wallet_api_url or self.sandbox_url).rstrip("/")

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
