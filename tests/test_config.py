"""Tests for environment settings and client configuration."""

import pytest
from pydantic import ValidationError

from console_text.core.config import DEFAULT_API_ENDPOINT, ClientConfig, Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "CONSOLE_TEXT_API_KEY",
        "CONSOLE_TEXT_ENVIRONMENT",
        "ENVIRONMENT",
        "CONSOLE_TEXT_PROJECT_ID",
        "CONSOLE_TEXT_RATE_LIMIT_PER_MINUTE",
        "CONSOLE_TEXT_RETRY_DELAY",
    ):
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    """Tests for Settings loaded from the environment."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.api_key == ""
        assert settings.api_endpoint == DEFAULT_API_ENDPOINT
        assert settings.project_id == "default"
        assert settings.environment == "development"
        assert settings.enabled is True
        assert settings.rate_limit_per_minute == 60
        assert settings.rate_limit_per_hour == 1000
        assert settings.retry_attempts == 3
        assert settings.retry_delay == 1000
        assert settings.queue_interval == 5000

    def test_reads_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("CONSOLE_TEXT_API_KEY", "ct_env")
        monkeypatch.setenv("CONSOLE_TEXT_PROJECT_ID", "billing")
        monkeypatch.setenv("CONSOLE_TEXT_RATE_LIMIT_PER_MINUTE", "120")

        settings = Settings(_env_file=None)

        assert settings.api_key == "ct_env"
        assert settings.project_id == "billing"
        assert settings.rate_limit_per_minute == 120

    def test_environment_falls_back_to_generic_variable(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "staging")
        assert Settings(_env_file=None).environment == "staging"

        monkeypatch.setenv("CONSOLE_TEXT_ENVIRONMENT", "production")
        assert Settings(_env_file=None).environment == "production"

    def test_rejects_non_positive_rate_limit(self, monkeypatch):
        monkeypatch.setenv("CONSOLE_TEXT_RATE_LIMIT_PER_MINUTE", "0")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_rejects_non_positive_retry_delay(self, monkeypatch):
        monkeypatch.setenv("CONSOLE_TEXT_RETRY_DELAY", "0")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)


class TestClientConfig:
    """Tests for the per-client configuration model."""

    def test_defaults(self):
        config = ClientConfig()

        assert config.timeout == 10.0
        assert config.enforce_backoff is True
        assert config.max_queue_size is None
        assert config.queue_overflow == "drop_oldest"

    def test_from_settings_with_overrides(self, monkeypatch):
        monkeypatch.setenv("CONSOLE_TEXT_API_KEY", "ct_env")
        monkeypatch.setenv("CONSOLE_TEXT_PROJECT_ID", "billing")

        config = ClientConfig.from_settings(Settings(_env_file=None), project_id="checkout")

        assert config.api_key == "ct_env"
        assert config.project_id == "checkout"

    def test_merged_returns_validated_copy(self):
        config = ClientConfig(api_key="a")
        updated = config.merged(api_key="b", debug=True)

        assert config.api_key == "a"
        assert updated.api_key == "b"
        assert updated.debug is True

    @pytest.mark.parametrize(
        "field,value",
        [
            ("retry_attempts", -1),
            ("retry_delay", 0),
            ("queue_interval", -5),
            ("timeout", 0),
            ("rate_limit_per_minute", 0),
            ("max_queue_size", 0),
            ("queue_overflow", "drop_random"),
        ],
    )
    def test_rejects_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            ClientConfig(**{field: value})

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            ClientConfig(api_secret="x")
