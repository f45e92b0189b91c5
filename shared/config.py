"""
Shared configuration management for the TreeShop access gateway.
"""

import re
from typing import Annotated, Any, List

import structlog
from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = structlog.get_logger("shared.config")

DEFAULT_RATE_LIMIT_WINDOW_MS = 3_600_000
DEFAULT_RATE_LIMIT_MAX_REQUESTS = 100
DEFAULT_CORS_ORIGINS = ["*"]

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local", validation_alias="TREESHOP_ENV")
    log_level: str = Field(default="info", validation_alias="TREESHOP_LOG_LEVEL")
    cors_origins: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_CORS_ORIGINS),
        validation_alias="TREESHOP_CORS_ORIGINS",
    )

    # Rate limiting
    rate_limit_window_ms: int = Field(
        default=DEFAULT_RATE_LIMIT_WINDOW_MS,
        validation_alias="RATE_LIMIT_WINDOW_MS",
    )
    rate_limit_max_requests: int = Field(
        default=DEFAULT_RATE_LIMIT_MAX_REQUESTS,
        validation_alias="RATE_LIMIT_MAX_REQUESTS",
    )
    rate_limit_sweep_interval_seconds: int = Field(
        default=300,
        validation_alias="RATE_LIMIT_SWEEP_INTERVAL_SECONDS",
    )
    rate_limit_max_tracked_keys: int = Field(
        default=100_000,
        validation_alias="RATE_LIMIT_MAX_TRACKED_KEYS",
    )

    @field_validator(
        "rate_limit_window_ms",
        "rate_limit_max_requests",
        "rate_limit_sweep_interval_seconds",
        "rate_limit_max_tracked_keys",
        mode="before",
    )
    @classmethod
    def _positive_int_or_default(cls, value: Any, info: ValidationInfo) -> int:
        """Read the leading integer of a value ("12.5" reads as 12); fall back to the default otherwise."""
        default = cls.model_fields[info.field_name].default
        if isinstance(value, int) and not isinstance(value, bool):
            parsed = value
        else:
            match = _LEADING_INT.match(str(value)) if value is not None else None
            if match is None:
                logger.warning(
                    "Invalid integer setting, falling back to default",
                    field=info.field_name,
                    value=value,
                    default=default,
                )
                return default
            parsed = int(match.group(1))

        if parsed <= 0:
            logger.warning(
                "Non-positive integer setting, falling back to default",
                field=info.field_name,
                value=parsed,
                default=default,
            )
            return default
        return parsed

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> List[str]:
        """Accept a comma-separated origin list; fall back to ``*`` when empty or unreadable."""
        if isinstance(value, str):
            origins = [origin.strip() for origin in value.split(",") if origin.strip()]
        elif isinstance(value, (list, tuple)):
            origins = [str(origin).strip() for origin in value if str(origin).strip()]
        else:
            origins = []

        if not origins:
            logger.warning(
                "Invalid CORS origins setting, falling back to default",
                value=value,
                default=DEFAULT_CORS_ORIGINS,
            )
            return list(DEFAULT_CORS_ORIGINS)
        return origins


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)
