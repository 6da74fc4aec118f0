"""Unit tests for application settings."""

import pytest
from pydantic import ValidationError

from paydesk.config.settings import Settings


class TestSettings:
    """Test Settings."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.bulk_poll_interval_seconds == 5.0
        assert settings.bulk_poll_initial_delay_seconds == 2.0
        assert settings.bulk_poll_max_attempts == 60
        assert settings.wallet_type == "BUSINESS"
        assert settings.default_currency == "UGX"

    @pytest.mark.parametrize(
        "app_env, expected",
        [
            ("production", "https://api.example.com"),
            ("staging", "https://staging.example.com"),
            ("development", "http://localhost:8000"),
        ],
    )
    def test_backend_url_per_environment(self, app_env, expected):
        settings = Settings(
            _env_file=None,
            app_env=app_env,
            production_api_url="https://api.example.com/",
            staging_api_url="https://staging.example.com",
            dev_api_url="http://localhost:8000",
        )

        assert settings.backend_url == expected

    def test_generic_api_url_fallback(self):
        settings = Settings(_env_file=None, app_env="PRODUCTION", api_url="https://fallback.example.com")

        assert settings.is_production
        assert settings.backend_url == "https://fallback.example.com"

    def test_unknown_environment_is_development(self):
        assert Settings(_env_file=None, app_env="qa").app_env == "development"

    def test_wallet_gateway_defaults_to_sandbox(self):
        settings = Settings(_env_file=None, sandbox_url="https://sandbox.example.com/")

        assert settings.wallet_gateway_url == "https://sandbox.example.com"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="VERBOSE")

    def test_poll_attempts_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, bulk_poll_max_attempts=0)
