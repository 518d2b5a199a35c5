"""
Amora — Application Configuration

Loads all configuration from environment variables (and an optional .env file)
using Pydantic Settings.  A cached ``get_settings()`` helper is provided so that
FastAPI dependency-injection (and any other call-site) always receives the same
validated instance without re-parsing the environment on every request.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the Amora ranking backend."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------ #
    # Gemini compatibility oracle
    # ------------------------------------------------------------------ #
    GEMINI_API_KEYS: str = ""  # comma-separated pool, rotated per batch
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_API_BASE: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_TEMPERATURE: float = 0.2
    GEMINI_MAX_OUTPUT_TOKENS: int = 2048

    # ------------------------------------------------------------------ #
    # Database – PostgreSQL via asyncpg
    # ------------------------------------------------------------------ #
    DATABASE_URL: str

    # ------------------------------------------------------------------ #
    # Redis – cross-process ranking locks and match events (optional)
    # ------------------------------------------------------------------ #
    REDIS_URL: str = ""

    # ------------------------------------------------------------------ #
    # Candidate ranking
    # ------------------------------------------------------------------ #
    RANKING_POOL_SIZE: int = 50
    RANKING_OVERFETCH_FACTOR: int = 2
    RANKING_TTL_HOURS: int = 24
    RANKING_WIDEN_ATTEMPTS: int = 0
    RANKING_LOCK_TIMEOUT_SECONDS: float = 120.0

    # ------------------------------------------------------------------ #
    # Compatibility scorer
    # ------------------------------------------------------------------ #
    SCORER_BATCH_SIZE: int = 2
    ORACLE_MAX_CONCURRENCY: int = 8
    ORACLE_BATCH_TIMEOUT_SECONDS: float = 20.0
    ORACLE_DEADLINE_SECONDS: float = 45.0
    ORACLE_MAX_ATTEMPTS: int = 1

    # ------------------------------------------------------------------ #
    # Runtime environment
    # ------------------------------------------------------------------ #
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    REQUEST_TIMEOUT_SECONDS: float = 70.0

    # ------------------------------------------------------------------ #
    # CORS
    # ------------------------------------------------------------------ #
    ALLOWED_ORIGINS: str = "*"

    # ------------------------------------------------------------------ #
    # Derived helpers
    # ------------------------------------------------------------------ #
    @property
    def allowed_origins_list(self) -> list[str]:
        """Return ALLOWED_ORIGINS as a list split on commas."""
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    @property
    def gemini_api_keys_list(self) -> list[str]:
        """Return GEMINI_API_KEYS as a list, dropping blanks."""
        return [k.strip() for k in self.GEMINI_API_KEYS.split(",") if k.strip()]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @field_validator(
        "RANKING_POOL_SIZE",
        "RANKING_TTL_HOURS",
        "SCORER_BATCH_SIZE",
        "ORACLE_MAX_CONCURRENCY",
        "ORACLE_MAX_ATTEMPTS",
    )
    @classmethod
    def _must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be >= 1, got {v}")
        return v

    @field_validator("RANKING_OVERFETCH_FACTOR")
    @classmethod
    def _overfetch_at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Overfetch factor must be >= 1, got {v}")
        return v

    @field_validator("RANKING_WIDEN_ATTEMPTS")
    @classmethod
    def _widen_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"Widen attempts must be >= 0, got {v}")
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached, validated ``Settings`` instance.

    Using ``@lru_cache`` guarantees the .env file is read and validated
    exactly once per process lifetime::

        from amora.config import get_settings
        settings = get_settings()
    """
    return Settings()  # type: ignore[call-arg]
