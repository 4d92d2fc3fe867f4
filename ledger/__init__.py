"""Transaction ingestion and deduplication store."""

__version__ = "0.1.0"
