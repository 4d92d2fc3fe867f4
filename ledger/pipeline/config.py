"""Aggregate configuration for the ingestion pipeline."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from ledger.dedup.config import DedupConfig
from ledger.monitor.config import MonitorConfig
from ledger.storage.config import StoreConfig


class LedgerConfig(BaseModel):
    """Main configuration for one pipeline instance."""

    # Sub-configurations
    store: StoreConfig = Field(default_factory=StoreConfig)
    dedup: DedupConfig = Field(default_factory=DedupConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)

    # Normalization defaults
    default_currency: str = Field(default="INR", description="Fallback currency code")
    default_source: str = Field(default="mill-chat", description="Fallback submission source")
    owner_phone: Optional[str] = Field(default=None, description="Ledger owner phone")

    # Operational settings
    monitor_enabled: bool = Field(default=True, description="Start the change monitor with the app")

    @classmethod
    def from_settings(cls, settings) -> LedgerConfig:
        """Create LedgerConfig from app settings."""
        return cls(
            store=StoreConfig.from_settings(settings),
            dedup=DedupConfig.from_settings(settings),
            monitor=MonitorConfig.from_settings(settings),
            default_currency=settings.DEFAULT_CURRENCY,
            default_source=settings.DEFAULT_SOURCE,
            owner_phone=settings.OWNER_PHONE,
            monitor_enabled=settings.MONITOR_ENABLED,
        )
