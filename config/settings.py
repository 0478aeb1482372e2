"""Application settings loaded from environment variables.

Uses pydantic-settings for validation and type coercion. App-specific
settings use the ``NAIYAKSETU_`` prefix; infrastructure settings
(logging, Redis) use their canonical environment variable names via
``validation_alias``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Central configuration for the NaiyakSetu complaint core.

    Environment variables are loaded from a ``.env`` file when present.
    App-specific keys are prefixed with ``NAIYAKSETU_``; infra keys use
    their standard names (configured via ``validation_alias``).
    """

    model_config = SettingsConfigDict(
        env_prefix="NAIYAKSETU_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ── App ────────────────────────────────────────────────────────────
    env: Literal["development", "production"] = "development"

    # ── Logging ────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")

    # ── Redis (atomic complaint sequence) ──────────────────────────────
    # Empty string keeps the counter in-process.
    redis_url: str = Field(default="", validation_alias="REDIS_URL")

    # ── Complaint identifiers ──────────────────────────────────────────
    complaint_id_prefix: str = Field(default="NS", min_length=1, max_length=8)
    complaint_sequence_width: int = Field(default=4, ge=1, le=12)
    complaint_id_max_attempts: int = Field(default=5, ge=1)

    # ── Lifecycle policy ───────────────────────────────────────────────
    allow_reopen_resolved: bool = True

    # ── Stats cache (seconds) ──────────────────────────────────────────
    stats_cache_ttl: int = Field(default=300, ge=0)  # 5 minutes

    # ── Derived Properties ─────────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.env == Environment.PRODUCTION


# Module-level singleton: import ``settings`` everywhere.
settings = Settings()
