"""Configuration module using Pydantic Settings."""

from functools import lru_cache

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from httpx_throttle.errors import ConfigurationError


class ThrottleSettings(BaseSettings):
    """Process-wide throttle defaults loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="THROTTLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Admission defaults, used when attach() omits the option
    default_mode: str = "block"
    default_max_retries: int = 3

    # HTTP Client
    http_timeout_connect: float = 10.0
    http_timeout_read: float = 30.0

    @field_validator("default_mode")
    @classmethod
    def _normalize_mode(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("block", "error"):
            raise ValueError(f"default_mode must be 'block' or 'error', got: {value!r}")
        return value

    @field_validator("default_max_retries")
    @classmethod
    def _check_max_retries(cls, value: int) -> int:
        if value < 0:
            raise ValueError("default_max_retries must be non-negative")
        return value


@lru_cache
def get_settings() -> ThrottleSettings:
    """Get cached settings instance."""
    return ThrottleSettings()


def load_settings() -> ThrottleSettings:
    """
    Get settings, reporting invalid environment values as ConfigurationError.

    Raises:
        ConfigurationError: If a THROTTLE_* variable fails validation
    """
    try:
        return get_settings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid throttle settings: {e}") from e
