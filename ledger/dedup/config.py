"""Configuration for duplicate detection.

Decision Flow:
--------------
1. A normalized record is looked up in the duplicate index by its key.
2. No hit                -> record is written ("logged").
3. Hit, policy suppress  -> record is dropped ("suppressed").
4. Hit, policy escalate  -> record waits for a human decision ("duplicate").
5. Hit, policy distinct  -> treated as escalation by the pipeline, since the
                            key still collides and the index keeps one record
                            per key.

The suppression window and description-length tolerance have no documented
product rationale; they are kept configurable so they can be tuned.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class DedupConfig(BaseModel):
    """Thresholds for the auto-suppression policy."""

    window_seconds: int = Field(
        default=120, ge=0, le=86400, description="Max time delta for auto-suppression"
    )
    amount_tolerance: float = Field(
        default=0.005, ge=0.0, le=1.0, description="Absolute amount tolerance"
    )
    description_length_tolerance: int = Field(
        default=12,
        ge=0,
        le=1000,
        description="Description length difference beyond which a collision escalates",
    )
    max_duplicate_handlers: int = Field(
        default=16, ge=1, le=256, description="Cap on duplicate-event subscribers"
    )

    @classmethod
    def from_settings(cls, settings) -> DedupConfig:
        """Create DedupConfig from app settings."""
        return cls(
            window_seconds=settings.DEDUP_WINDOW_SECONDS,
            amount_tolerance=settings.DEDUP_AMOUNT_TOLERANCE,
            description_length_tolerance=settings.DEDUP_DESCRIPTION_LENGTH_TOLERANCE,
            max_duplicate_handlers=settings.MAX_DUPLICATE_HANDLERS,
        )
