"""Data models for raw submissions and normalized transaction records."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Direction = Literal["expense", "income"]
SpendingFlavor = Literal["necessity", "treat", "luxury"]


class TransactionPayload(BaseModel):
    """Raw transaction submission from a chat tool call or the SMS path.

    Amount and direction are deliberately loose here; the normalizer
    validates them and raises InvalidPayload.
    """

    amount: Any = Field(..., description="Transaction amount (number or numeric string)")
    description: str = Field(default="", description="Short free-text description")
    direction: str = Field(..., description="expense | income (debit/credit accepted)")
    raw_text: str = Field(default="", description="Original user or SMS text")
    category_suggestion: str = Field(default="", description="Category hint from the caller")


class CategorizationResult(BaseModel):
    """Outcome of categorizing a submission."""

    flavor: SpendingFlavor = Field(default="necessity", description="Spending flavor")
    inferred_category: str = Field(default="", description="Rule-inferred category")


class NormalizeOptions(BaseModel):
    """Contextual hints and overrides for normalization."""

    now: datetime | None = Field(default=None, description="Clock override (defaults to local now)")
    default_currency: str | None = Field(default=None, description="Currency hint when raw text names none")
    source: str | None = Field(default=None, description="Submission source")
    owner_phone: str | None = Field(default=None, description="Ledger owner phone")
    extra_heuristics: list[str] = Field(default_factory=list, description="Extra heuristics to record")
    extra_tags: list[str] = Field(default_factory=list, description="Extra tags to merge")
    target_party: str | None = Field(default=None, description="Counterparty")
    medium: str | None = Field(default=None, description="Payment medium (upi, card, bank, other)")
    event_date_override: date | None = Field(default=None, description="Explicit event date")
    event_time_override: str | None = Field(default=None, description="Explicit event time (HH:MM[:SS])")
    clear_event_time: bool = Field(
        default=False, description="Drop any detected event time (unknown time of day)"
    )


class TransactionMeta(BaseModel):
    """Provenance metadata attached to a normalized transaction."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(..., description="Submission source")
    heuristics: list[str] = Field(default_factory=list, description="Detection heuristics applied")
    raw_category_suggestion: str | None = Field(default=None, description="Caller's category hint")
    parsed_temporal_phrase: str | None = Field(default=None, description="Temporal phrase that set the event date")
    target_party: str | None = Field(default=None, description="Counterparty")
    medium: str | None = Field(default=None, description="Payment medium")
    owner_phone: str | None = Field(default=None, description="Ledger owner phone")


class NormalizedTransaction(BaseModel):
    """Canonical, immutable transaction record."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Generation-time unique identifier")
    recorded_at: datetime = Field(..., description="When normalization occurred")
    event_date: date = Field(..., description="Real-world transaction date")
    event_time: str | None = Field(default=None, description="Real-world time (HH:MM:SS); None means unknown")
    direction: Direction = Field(..., description="expense | income")
    amount: Decimal = Field(..., ge=0, description="Non-negative magnitude")
    currency: str = Field(..., description="ISO-style currency code")
    category: str = Field(default="", description="Category label")
    flavor: SpendingFlavor = Field(default="necessity", description="Spending flavor")
    description: str = Field(default="", description="Transaction description")
    raw_text: str = Field(default="", description="Original text")
    tags: list[str] = Field(default_factory=list, description="Unique lower-case labels")
    structured_summary: str = Field(default="", description="One-line human summary")
    meta: TransactionMeta = Field(..., description="Provenance metadata")

    @property
    def event_datetime(self) -> str:
        """Event date and time as stored in the datetime column."""
        return f"{self.event_date.isoformat()}T{self.event_time or '00:00:00'}"


class AnalyticsMetadata(BaseModel):
    """Derived row emitted to the analytics stream for downstream consumers."""

    transaction_id: str
    recorded_at: datetime
    amount: Decimal
    currency: str
    direction: Direction
    category: str
    flavor: SpendingFlavor
    tags: list[str] = Field(default_factory=list)
    description: str = ""
    event_date: date
    event_time: str | None = None

    @classmethod
    def from_transaction(cls, transaction: NormalizedTransaction) -> AnalyticsMetadata:
        return cls(
            transaction_id=transaction.id,
            recorded_at=transaction.recorded_at,
            amount=transaction.amount,
            currency=transaction.currency,
            direction=transaction.direction,
            category=transaction.category,
            flavor=transaction.flavor,
            tags=list(transaction.tags),
            description=transaction.description,
            event_date=transaction.event_date,
            event_time=transaction.event_time,
        )
