"""Result models returned by the ingestion pipeline."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from ledger.normalization.models import AnalyticsMetadata, NormalizedTransaction


class IngestLogged(BaseModel):
    """Submission accepted and written to the store."""

    status: Literal["logged"] = "logged"
    transaction: NormalizedTransaction
    metadata: AnalyticsMetadata


class IngestSuppressed(BaseModel):
    """Submission dropped as an exact re-send of an existing record."""

    status: Literal["suppressed"] = "suppressed"
    transaction: NormalizedTransaction
    duplicate_of: NormalizedTransaction
    reason: str


class IngestDuplicate(BaseModel):
    """Submission held for a human decision."""

    status: Literal["duplicate"] = "duplicate"
    transaction: NormalizedTransaction
    duplicate_of: NormalizedTransaction
    pending_id: str


IngestResult = Annotated[
    Union[IngestLogged, IngestSuppressed, IngestDuplicate],
    Field(discriminator="status"),
]
