"""Normalization of raw transaction submissions into canonical records."""

from ledger.normalization.models import (
    AnalyticsMetadata,
    CategorizationResult,
    NormalizedTransaction,
    NormalizeOptions,
    TransactionMeta,
    TransactionPayload,
)
from ledger.normalization.categorize import categorize_transaction
from ledger.normalization.normalizer import (
    detect_currency,
    detect_temporal_context,
    normalize_amount,
    normalize_currency,
    normalize_direction,
    normalize_event_time,
    normalize_transaction,
)

__all__ = [
    # Models
    "AnalyticsMetadata",
    "CategorizationResult",
    "NormalizedTransaction",
    "NormalizeOptions",
    "TransactionMeta",
    "TransactionPayload",
    # Functions
    "categorize_transaction",
    "detect_currency",
    "detect_temporal_context",
    "normalize_amount",
    "normalize_currency",
    "normalize_direction",
    "normalize_event_time",
    "normalize_transaction",
]
