from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Ledger service settings.

    Values come from environment variables, then an optional ``.env`` file.
    The per-component configs (StoreConfig, DedupConfig, MonitorConfig) are
    built from these via their ``from_settings`` classmethods.
    """

    # App basics
    ENV: Literal["development", "staging", "production"] = "development"
    """Environment mode: affects logging output format."""

    DEBUG: bool = True
    """Enable debug mode: verbose logging."""

    # Storage
    DATA_DIR: str = "data"
    """Directory holding the transaction store and its companion files."""

    TRANSACTIONS_FILE: str = "transactions.csv"
    """File name of the append-only transaction store."""

    ANALYTICS_FILE: str = "analyst-metadata.csv"
    """File name of the analytics metadata stream."""

    SMS_LOG_FILE: str = "sms-ingest-log.csv"
    """File name of the SMS ingestion audit log."""

    FSYNC_WRITES: bool = False
    """fsync every append before returning."""

    # Normalization
    DEFAULT_CURRENCY: str = "INR"
    """Currency used when neither the raw text nor the caller names one."""

    DEFAULT_SOURCE: str = "mill-chat"
    """Submission source recorded when the caller does not supply one."""

    OWNER_PHONE: Optional[str] = None
    """Phone number of the ledger owner, written to the owner_phone column."""

    # Deduplication
    DEDUP_WINDOW_SECONDS: int = 120
    """Maximum time delta for auto-suppressing an exact re-send."""

    DEDUP_AMOUNT_TOLERANCE: float = 0.005
    """Absolute amount tolerance for auto-suppression."""

    DEDUP_DESCRIPTION_LENGTH_TOLERANCE: int = 12
    """Description length difference beyond which a collision escalates."""

    MAX_DUPLICATE_HANDLERS: int = 16
    """Upper bound on registered duplicate-event subscribers."""

    # Change monitor
    MONITOR_ENABLED: bool = True
    """Start the change monitor with the HTTP app."""

    MONITOR_DEBOUNCE_MS: int = 200
    """Quiet period after the last file change before re-scanning."""

    MONITOR_POLL_INTERVAL_MS: int = 100
    """How often the store file signature is sampled."""

    # Model config
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance to avoid re-parsing .env repeatedly."""
    return Settings()
