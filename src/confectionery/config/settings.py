"""Application settings.

Loaded from environment variables (prefix ``CONFECTIONERY_``) or a local
``.env`` file, with defaults suitable for a single-store deployment.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Top-level configuration for the store core."""

    model_config = SettingsConfigDict(
        env_prefix="CONFECTIONERY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Persistence
    data_dir: Path = Path("data")

    # Orders
    currency: str = "PYG"
    order_number_prefix: str = "QUE"
    whatsapp_business_phone: str = "595981234567"

    # Stock ledger
    ledger_max_attempts: int = Field(default=5, ge=1, le=50)
    ledger_backoff_base: float = Field(default=0.01, ge=0.0)
    default_low_stock_threshold: int = Field(default=5, ge=0)


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()


def reset_settings() -> None:
    """Drop the cached settings (used by tests that tweak the environment)."""
    get_settings.cache_clear()
