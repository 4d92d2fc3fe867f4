"""Ingestion pipeline: the single entry point for chat and SMS collaborators."""

from ledger.pipeline.config import LedgerConfig
from ledger.pipeline.metrics import IngestMetrics
from ledger.pipeline.models import (
    IngestDuplicate,
    IngestLogged,
    IngestResult,
    IngestSuppressed,
)
from ledger.pipeline.service import IngestPipeline, create_pipeline

__all__ = [
    "IngestDuplicate",
    "IngestLogged",
    "IngestMetrics",
    "IngestPipeline",
    "IngestResult",
    "IngestSuppressed",
    "LedgerConfig",
    "create_pipeline",
]
