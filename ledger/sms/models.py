"""Data models for SMS exports and the structured extraction of a message."""

from __future__ import annotations

from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ledger.normalization.models import NormalizedTransaction

SmsMedium = Literal["upi", "card", "bank", "other"]


class SmsMessage(BaseModel):
    """One exported SMS, optionally carrying pre-extracted transaction fields."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sender: str
    sender_name: Optional[str] = Field(default=None, alias="senderName")
    message: str
    timestamp: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    datetime_readable: Optional[str] = None
    category: Optional[str] = None
    score: Optional[str] = None
    is_financial: Optional[str] = None
    amount: Optional[str] = None
    currency: Optional[str] = None
    type: Optional[str] = None
    medium: Optional[str] = None
    target_party: Optional[str] = Field(default=None, alias="targetParty")
    description: Optional[str] = None
    extracted_date: Optional[str] = Field(default=None, alias="extractedDate")

    @field_validator(
        "score", "is_financial", "amount", "timestamp", "date", "time", mode="before"
    )
    @classmethod
    def coerce_to_str(cls, v):
        if v is None or isinstance(v, str):
            return v
        return str(v).lower() if isinstance(v, bool) else str(v)


class SmsOwner(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None


class SmsExport(BaseModel):
    """A phone's SMS export: owner plus messages."""

    owner: Optional[SmsOwner] = None
    messages: list[SmsMessage] = Field(default_factory=list)


class SmsExtraction(BaseModel):
    """Structured transaction fields extracted from one SMS."""

    model_config = ConfigDict(populate_by_name=True)

    amount: Decimal = Field(..., ge=0)
    type: Literal["credit", "debit"]
    target_party: str = Field(default="", alias="targetParty")
    currency: Optional[str] = None
    medium: SmsMedium = "other"
    category: str = ""
    description: str = ""
    date_of_transaction: str = ""

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip().upper() or None

    @field_validator("target_party", "category", "description", "date_of_transaction")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    @field_validator("medium", mode="before")
    @classmethod
    def normalize_medium(cls, v):
        text = str(v or "").strip().lower()
        return text if text in ("upi", "card", "bank") else "other"


class SmsOutcome(BaseModel):
    """Result of processing one SMS through the pipeline."""

    status: Literal["processed", "suppressed", "duplicate", "skipped"]
    reason: Optional[str] = None
    transaction: Optional[NormalizedTransaction] = None
    duplicate_of: Optional[NormalizedTransaction] = None
    pending_id: Optional[str] = None


class SmsIngestSummary(BaseModel):
    """Counts for one SMS export ingestion run."""

    processed: int = 0
    skipped: int = 0
    errors: int = 0
    duplicates: int = 0
    suppressed: int = 0
    owner_name: Optional[str] = None
    owner_phone: Optional[str] = None
