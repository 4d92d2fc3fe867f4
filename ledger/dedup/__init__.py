"""Duplicate detection, auto-suppression and pending-duplicate resolution."""

from ledger.dedup.config import DedupConfig
from ledger.dedup.index import DuplicateIndex
from ledger.dedup.models import (
    EXACT_MATCH_WITHIN_WINDOW,
    DuplicateStatus,
    PendingDuplicate,
    ResolutionAction,
    ResolutionResult,
    SuppressionDecision,
    SuppressionOutcome,
)
from ledger.dedup.policy import (
    build_duplicate_key,
    evaluate_suppression,
    resolve_transaction_timestamp,
)
from ledger.dedup.resolver import DuplicateResolver

__all__ = [
    "EXACT_MATCH_WITHIN_WINDOW",
    "DedupConfig",
    "DuplicateIndex",
    "DuplicateResolver",
    "DuplicateStatus",
    "PendingDuplicate",
    "ResolutionAction",
    "ResolutionResult",
    "SuppressionDecision",
    "SuppressionOutcome",
    "build_duplicate_key",
    "evaluate_suppression",
    "resolve_transaction_timestamp",
]
