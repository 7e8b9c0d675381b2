"""Configuration with pydantic-settings.

Values come from the environment (or a local ``.env`` file).

Usage:
    from redfish_subscriptions.config import get_settings

    settings = get_settings()
    settings.redfish_request_timeout
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    All fields are optional with sensible defaults.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging configuration
    service_name: str = Field(
        default="redfish-subscriptions",
        description="Service name for structured logging",
    )
    log_format: Literal["json", "console"] = Field(
        default="console",
        description="Log output format",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )

    # Redfish transport
    redfish_verify_tls: bool = Field(
        default=False,
        description="Verify BMC TLS certificates (most BMCs ship self-signed certs)",
    )
    redfish_request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for every Redfish HTTP request",
    )
    redfish_version_detection: bool = Field(
        default=True,
        description="Pick the subscription request shape from the advertised RedfishVersion",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper_v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
