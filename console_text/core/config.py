from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_ENDPOINT = "https://api.console-text.dev/messages"
DEFAULT_TIMEOUT = 10.0


def _validate_positive(name: str, v: float) -> float:
    if v <= 0:
        raise ValueError(f"{name} must be positive")
    return v


class Settings(BaseSettings):
    """Client settings loaded from environment variables.

    All settings can be configured via ``CONSOLE_TEXT_*`` environment
    variables or a .env file.
    """

    # Credentials and destination
    api_key: str = ""
    api_endpoint: str = DEFAULT_API_ENDPOINT

    # Context tags attached to every message
    project_id: str = "default"
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("CONSOLE_TEXT_ENVIRONMENT", "ENVIRONMENT"),
    )

    enabled: bool = True
    debug: bool = False

    # Rate limiting settings
    rate_limit_per_minute: int = 60
    rate_limit_per_hour: int = 1000  # Accepted but not enforced by the bucket

    # Retry settings (delays in milliseconds)
    retry_attempts: int = 3
    retry_delay: int = 1000
    queue_interval: int = 5000

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    @field_validator("rate_limit_per_minute", "rate_limit_per_hour")
    @classmethod
    def validate_rate_limit_positive(cls, v: int) -> int:
        """Validate rate limit values are positive."""
        if v < 1:
            raise ValueError("Rate limit values must be at least 1")
        return v

    @field_validator("retry_attempts")
    @classmethod
    def validate_retry_attempts(cls, v: int) -> int:
        if v < 0:
            raise ValueError("retry_attempts must not be negative")
        return v

    @field_validator("retry_delay", "queue_interval")
    @classmethod
    def validate_interval_positive(cls, v: int, info) -> int:
        return int(_validate_positive(info.field_name, v))

    model_config = SettingsConfigDict(
        env_prefix="CONSOLE_TEXT_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )


class ClientConfig(BaseModel):
    """Live configuration of a single ConsoleTextClient.

    Times are in milliseconds except ``timeout`` (seconds), matching the
    relay's configuration surface.
    """

    api_key: str = ""
    api_endpoint: str = DEFAULT_API_ENDPOINT
    project_id: str = "default"
    environment: str = "development"
    enabled: bool = True
    rate_limit_per_minute: int = 60
    rate_limit_per_hour: int = 1000
    debug: bool = False
    retry_attempts: int = 3
    retry_delay: int = 1000

    # Queue processing
    queue_interval: int = 5000
    enforce_backoff: bool = True  # Hold retries until scheduled_at has passed
    max_queue_size: Optional[int] = None  # None keeps the queue unbounded
    queue_overflow: Literal["drop_oldest", "drop_newest"] = "drop_oldest"

    timeout: float = DEFAULT_TIMEOUT

    model_config = ConfigDict(extra="forbid")

    @field_validator("rate_limit_per_minute", "rate_limit_per_hour")
    @classmethod
    def validate_rate_limit_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Rate limit values must be at least 1")
        return v

    @field_validator("retry_attempts")
    @classmethod
    def validate_retry_attempts(cls, v: int) -> int:
        if v < 0:
            raise ValueError("retry_attempts must not be negative")
        return v

    @field_validator("retry_delay", "queue_interval", "timeout")
    @classmethod
    def validate_positive(cls, v: float, info) -> float:
        return _validate_positive(info.field_name, v)

    @field_validator("max_queue_size")
    @classmethod
    def validate_max_queue_size(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("max_queue_size must be at least 1")
        return v

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None, **overrides: Any) -> "ClientConfig":
        """Build a client config from environment settings.

        Args:
            source: Settings instance (defaults to the global ``settings``)
            **overrides: Fields that take priority over the environment

        Returns:
            Validated ClientConfig
        """
        source = source or settings
        data = source.model_dump(include=set(cls.model_fields))
        data.update(overrides)
        return cls.model_validate(data)

    def merged(self, **changes: Any) -> "ClientConfig":
        """Return a validated copy with ``changes`` applied."""
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)


# Global settings instance
settings = Settings()
