"""Configuration management using Pydantic Settings."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from energygrid.errors import ConfigurationError

QUERY_PATH = "/device/real/query"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API
    api_base_url: str = "http://localhost:3000"
    secret_token: SecretStr

    # Logging
    log_level: Literal["info", "debug"] = "info"

    # Batching and pacing
    batch_size: int = Field(10, ge=1)
    rate_limit_ms: int = Field(1000, ge=0)
    max_retries: int = Field(3, ge=0)
    request_timeout_ms: int = Field(10_000, gt=0)

    # Device population
    device_count: int = Field(500, ge=0)
    device_id_prefix: str = "SN-"
    device_id_width: int = Field(3, ge=1)

    # Persistence
    output_dir: str = "."

    @field_validator("secret_token")
    @classmethod
    def _secret_not_blank(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("log_level", mode="before")
    @classmethod
    def _lowercase_level(cls, value: object) -> object:
        return value.lower() if isinstance(value, str) else value

    @property
    def query_url(self) -> str:
        return f"{self.api_base_url}{QUERY_PATH}"


def load_settings(**overrides: object) -> Settings:
    """Build settings from the environment, failing fast on invalid config."""
    try:
        return Settings(**overrides)  # type: ignore[arg-type]
    except ValidationError as exc:
        problems = []
        for error in exc.errors():
            field = ".".join(str(part) for part in error["loc"]) or "settings"
            problems.append(f"{field.upper()}: {error['msg']}")
        raise ConfigurationError("Invalid configuration - " + "; ".join(problems)) from exc
