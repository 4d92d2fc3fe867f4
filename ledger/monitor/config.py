"""Configuration for the store change monitor."""

from __future__ import annotations

from pydantic import BaseModel, Field


class MonitorConfig(BaseModel):
    """Polling and debounce settings for the change monitor."""

    debounce_ms: int = Field(
        default=200, ge=0, le=60000, description="Quiet period before re-scanning"
    )
    poll_interval_ms: int = Field(
        default=100, ge=10, le=60000, description="File signature sampling interval"
    )
    initial_scan: bool = Field(
        default=True, description="Scan once immediately when the monitor starts"
    )

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000

    @classmethod
    def from_settings(cls, settings) -> MonitorConfig:
        """Create MonitorConfig from app settings."""
        return cls(
            debounce_ms=settings.MONITOR_DEBOUNCE_MS,
            poll_interval_ms=settings.MONITOR_POLL_INTERVAL_MS,
        )
