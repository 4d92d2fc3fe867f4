"""
Ledger API routes.

Thin HTTP surface over the ingestion pipeline: submit transactions, list and
resolve pending duplicates, read metrics. The pipeline handle lives on
``app.state.pipeline``.
"""

import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel, Field

from ledger.core.errors import InvalidPayload
from ledger.dedup.models import PendingDuplicate, ResolutionResult
from ledger.normalization.models import (
    CategorizationResult,
    NormalizeOptions,
    TransactionPayload,
)
from ledger.pipeline.models import IngestResult
from ledger.pipeline.service import IngestPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ledger", tags=["ledger"])


class IngestRequest(BaseModel):
    """Request body for submitting a transaction."""

    payload: TransactionPayload
    categorization: Optional[CategorizationResult] = None
    options: Optional[NormalizeOptions] = None


class ResolveRequest(BaseModel):
    """Request body for resolving a pending duplicate."""

    action: Literal["record", "ignore"] = Field(..., description="Human decision")


class PendingDuplicatesResponse(BaseModel):
    """Response for the pending duplicates listing."""

    count: int
    pending: List[PendingDuplicate]


def get_pipeline(request: Request) -> IngestPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Ledger pipeline not initialized",
        )
    return pipeline


@router.post("/transactions", response_model=IngestResult)
async def submit_transaction(body: IngestRequest, request: Request):
    """
    Submit one transaction.

    Returns the ingest outcome: "logged", "suppressed" (exact re-send) or
    "duplicate" (held for review, with its pending_id).
    """
    pipeline = get_pipeline(request)
    try:
        return await pipeline.ingest(body.payload, body.categorization, body.options)
    except InvalidPayload as e:
        raise HTTPException(
            status_code=422,
            detail={"message": str(e), "field": e.field},
        )


@router.get("/duplicates", response_model=PendingDuplicatesResponse)
async def list_duplicates(request: Request):
    """List submissions awaiting a record/ignore decision."""
    pending = get_pipeline(request).list_pending_duplicates()
    return PendingDuplicatesResponse(count=len(pending), pending=pending)


@router.post("/duplicates/{pending_id}/resolve", response_model=ResolutionResult)
async def resolve_duplicate(pending_id: str, body: ResolveRequest, request: Request):
    """
    Resolve a pending duplicate.

    An unknown or already resolved id returns status "not-found" with 200.
    """
    result = await get_pipeline(request).resolve_duplicate(pending_id, body.action)
    logger.info("Resolved pending duplicate %s -> %s", pending_id, result.status)
    return result


@router.get("/metrics")
async def get_metrics(request: Request) -> Dict[str, Any]:
    """Pipeline counters, pending count and monitor activity."""
    return get_pipeline(request).get_metrics()
