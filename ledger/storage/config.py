"""Configuration for the CSV transaction store."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field


class StoreConfig(BaseModel):
    """File locations and durability settings for one store."""

    data_dir: str = Field(default="data", description="Directory holding the store files")
    transactions_file: str = Field(
        default="transactions.csv", description="Append-only transaction store"
    )
    analytics_file: str = Field(
        default="analyst-metadata.csv", description="Analytics metadata stream"
    )
    fsync: bool = Field(default=False, description="fsync every append before returning")

    @property
    def transactions_path(self) -> Path:
        return Path(self.data_dir) / self.transactions_file

    @property
    def analytics_path(self) -> Path:
        return Path(self.data_dir) / self.analytics_file

    @classmethod
    def from_settings(cls, settings) -> StoreConfig:
        """Create StoreConfig from app settings."""
        return cls(
            data_dir=settings.DATA_DIR,
            transactions_file=settings.TRANSACTIONS_FILE,
            analytics_file=settings.ANALYTICS_FILE,
            fsync=settings.FSYNC_WRITES,
        )
