"""Data models for duplicate detection and resolution."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from ledger.normalization.models import AnalyticsMetadata, NormalizedTransaction

EXACT_MATCH_WITHIN_WINDOW = "exact-match-within-window"


class SuppressionOutcome(str, Enum):
    """Outcome of comparing a colliding submission to the indexed record."""

    SUPPRESS = "suppress"  # Exact re-send, drop silently
    ESCALATE = "escalate"  # Fields disagree, a human must decide
    DISTINCT = "distinct"  # Fields agree but timestamps are too far apart


class SuppressionDecision(BaseModel):
    """Tagged result of the auto-suppression policy."""

    outcome: SuppressionOutcome
    reason: str = Field(..., description="Machine-readable reason for the outcome")
    delta_seconds: float | None = Field(default=None, description="Timestamp delta when computed")

    @property
    def suppressed(self) -> bool:
        return self.outcome == SuppressionOutcome.SUPPRESS


class DuplicateStatus(str, Enum):
    """Lifecycle of a possible duplicate."""

    CANDIDATE = "candidate"  # Just detected
    PENDING = "pending"  # Listed, awaiting a decision
    RECORDED = "recorded"  # Human chose to keep it
    IGNORED = "ignored"  # Human chose to drop it


class ResolutionAction(str, Enum):
    """Human decision on a pending duplicate."""

    RECORD = "record"
    IGNORE = "ignore"


class PendingDuplicate(BaseModel):
    """A colliding submission held for a human decision."""

    pending_id: str = Field(..., description="Candidate's own transaction id")
    candidate: NormalizedTransaction
    existing: NormalizedTransaction
    status: DuplicateStatus = Field(default=DuplicateStatus.CANDIDATE)
    detected_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ResolutionResult(BaseModel):
    """Result of resolving a pending duplicate."""

    status: Literal["recorded", "ignored", "not-found"]
    pending_id: str
    candidate: NormalizedTransaction | None = None
    existing: NormalizedTransaction | None = None
    metadata: AnalyticsMetadata | None = None
