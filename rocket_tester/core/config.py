"""Harness settings with Pydantic validation and environment loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Harness settings loaded from ROCKET_TESTER_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ROCKET_TESTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service under test
    base_url: str = Field(
        default="http://127.0.0.1:8585/",
        description="Base URL the ticket service listens on",
    )
    request_timeout: float = Field(
        default=1.0, gt=0, description="Per-request timeout in seconds"
    )

    # Subprocess lifecycle
    java_executable: str = Field(
        default="java", description="Executable used to run the jar"
    )
    startup_grace_period: float = Field(
        default=0.2,
        ge=0,
        description="Seconds to wait after spawning before the liveness check",
    )
    kill_timeout: float = Field(
        default=1.0, gt=0, description="Upper bound in seconds for killing a rocket"
    )

    # Logging
    log_level: str = Field(
        default="INFO", description="Log level: DEBUG, INFO, WARNING, ERROR"
    )
    log_format: str = Field(default="text", description="Log format: json or text")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"log_level must be one of {valid}")
        return upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        lower = v.lower()
        if lower not in {"json", "text"}:
            raise ValueError("log_format must be 'json' or 'text'")
        return lower


@lru_cache
def get_settings() -> Settings:
    """Cached settings factory."""
    return Settings()


settings = get_settings()
