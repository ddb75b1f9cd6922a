"""RoadRelay configuration settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RelaySettings(BaseSettings):
    """Connection manager settings.

    Environment variables use RELAY_ prefix.
    Example: RELAY_RETRY_DELAY=0.5
    """

    retry_delay: float = Field(
        default=2.0,
        ge=0,
        description="Seconds to wait before reconnecting after an unexpected close",
    )

    verbose: bool = Field(
        default=False,
        description="Log open/close/error transitions at INFO level",
    )

    model_config = SettingsConfigDict(
        env_prefix="RELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )


@lru_cache(maxsize=1)
def get_relay_settings() -> RelaySettings:
    """Get cached relay settings."""
    return RelaySettings()
