"""Orchestrator settings for fleet-core.

``FleetSettings`` collects every tunable the scheduler and the task
lifecycle read at startup: database location, logging, tick period,
retry curve and claim batch size.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup, not runtime
    - **Environment-driven:** Reads ``FLEET_*`` env vars and .env files
    - **Sensible defaults:** Works out of the box for development

Examples:
    >>> from fleet.core.settings import FleetSettings
    >>> FleetSettings(retry_multiplier=3.0).retry_multiplier
    3.0

Tags:
    settings, configuration, pydantic, environment, fleet-core

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FleetSettings(BaseSettings):
    """Settings shared by the scheduler, task lifecycle and CLI.

    Fields
    ──────
    database_path              : SQLite file holding policies, agents and tasks
    log_level                  : Structlog log level
    json_logs                  : Force JSON (True) / console (False) rendering
    scheduler_interval_seconds : Period between scheduler ticks
    stop_timeout_seconds       : Interval between "still stopping" warnings
    default_max_retries        : Retry budget for policies without one
    retry_base_delay_seconds   : Delay before the first retry
    retry_multiplier           : Growth factor between retries (> 1)
    claim_limit_default        : Batch size for a task claim
    """

    model_config = SettingsConfigDict(
        env_prefix="FLEET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    database_path: Path = Field(
        default_factory=lambda: Path.home() / ".fleet" / "fleet.db",
        description="SQLite database file",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    # ── Scheduler ────────────────────────────────────────────────
    scheduler_interval_seconds: float = Field(default=60.0, gt=0)
    stop_timeout_seconds: float = Field(default=5.0, gt=0)

    # ── Retry / claims ───────────────────────────────────────────
    default_max_retries: int = Field(default=3, ge=0)
    retry_base_delay_seconds: float = Field(default=5.0, gt=0)
    retry_multiplier: float = 2.0
    claim_limit_default: int = Field(default=10, ge=1)

    @field_validator("retry_multiplier")
    @classmethod
    def _multiplier_grows(cls, value: float) -> float:
        if value <= 1.0:
            raise ValueError("retry_multiplier must be greater than 1")
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> FleetSettings:
    """Return the process-wide settings (read once from the environment)."""
    return FleetSettings()


__all__ = ["FleetSettings", "get_settings"]
