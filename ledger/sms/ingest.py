"""
SMS ingestion.

Turns exported bank SMS messages into pipeline submissions. Structured
fields come from an extractor (in production an LLM client owned by the
caller); the default extractor only reads fields already present on the
message.
"""

import inspect
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Union

import structlog
from pydantic import ValidationError

from ledger.core.errors import InvalidPayload
from ledger.normalization.categorize import categorize_transaction
from ledger.normalization.models import NormalizeOptions, TransactionPayload
from ledger.pipeline.models import IngestDuplicate, IngestSuppressed
from ledger.pipeline.service import IngestPipeline
from ledger.sms.log import SmsLog
from ledger.sms.models import (
    SmsExport,
    SmsExtraction,
    SmsIngestSummary,
    SmsMessage,
    SmsOutcome,
)

logger = structlog.get_logger()

SMS_SOURCE = "sms-webhook"

FINANCIAL_CUES_RE = re.compile(r"rs\.|inr|credited|debited|dr\.|cr\.")

Extractor = Callable[
    [SmsMessage], Union[Awaitable[Optional[SmsExtraction]], Optional[SmsExtraction]]
]


def is_financial(message: SmsMessage) -> bool:
    """Explicit is_financial flag wins; otherwise look for money vocabulary."""
    explicit = (message.is_financial or "").strip().lower()
    if explicit == "true":
        return True
    if explicit == "false":
        return False
    return bool(FINANCIAL_CUES_RE.search(message.message.lower()))


def extract_from_fields(message: SmsMessage) -> Optional[SmsExtraction]:
    """
    Build an extraction from fields already present on the message.

    Returns:
        SmsExtraction, or None when amount or type is missing or unusable
    """
    txn_type = (message.type or "").strip().lower()
    if txn_type not in ("credit", "debit"):
        return None

    try:
        amount = Decimal((message.amount or "").replace(",", "").strip())
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None

    when = message.extracted_date or message.timestamp or ""
    if not when and message.date:
        when = f"{message.date}T{message.time}" if message.time else message.date

    try:
        return SmsExtraction(
            amount=amount,
            type=txn_type,
            target_party=message.target_party or "",
            currency=message.currency,
            medium=message.medium,
            category=message.category or "",
            description=message.description or "",
            date_of_transaction=when,
        )
    except ValidationError as e:
        logger.debug("sms.extraction_invalid", sender=message.sender, error=str(e))
        return None


def resolve_event_overrides(timestamp: str) -> tuple[Optional[date], Optional[str]]:
    """
    Split an extraction timestamp into event date and time overrides.

    Midnight means the SMS carried a date only, so no time override is set.
    """
    if not timestamp:
        return None, None
    text = timestamp.strip().replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            return date.fromisoformat(text), None
        except ValueError:
            return None, None

    if (parsed.hour, parsed.minute, parsed.second) == (0, 0, 0):
        return parsed.date(), None
    return parsed.date(), f"{parsed.hour:02d}:{parsed.minute:02d}"


def build_heuristics(message: SmsMessage, extraction: SmsExtraction) -> list[str]:
    heuristics = [
        "source:sms-llm",
        f"medium:{extraction.medium}",
        f"date_of_transaction:{extraction.date_of_transaction}",
    ]
    if extraction.target_party:
        heuristics.append(f"target:{extraction.target_party}")
    if message.sender:
        heuristics.append(f"sender:{message.sender}")
    if message.sender_name:
        heuristics.append(f"sender-name:{message.sender_name}")
    if message.timestamp:
        heuristics.append(f"payload-ts:{message.timestamp}")
    if message.date:
        heuristics.append(f"payload-date:{message.date}")
    if message.time:
        heuristics.append(f"payload-time:{message.time}")
    return list(dict.fromkeys(heuristics))


async def process_sms_message(
    message: SmsMessage,
    pipeline: IngestPipeline,
    extractor: Optional[Extractor] = None,
    sms_log: Optional[SmsLog] = None,
    now: Optional[datetime] = None,
    default_currency: Optional[str] = None,
) -> SmsOutcome:
    """
    Run one SMS through extraction and the ingestion pipeline.

    Args:
        message: Exported SMS
        pipeline: Pipeline bound to the target store
        extractor: Structured-field extractor (defaults to extract_from_fields)
        sms_log: Audit log for messages that produce a stored record
        now: Clock override
        default_currency: Currency when the extraction names none

    Returns:
        SmsOutcome with status processed / suppressed / duplicate / skipped
    """
    if not is_financial(message):
        return SmsOutcome(status="skipped", reason="non-financial")

    extractor = extractor or extract_from_fields
    extraction = extractor(message)
    if inspect.isawaitable(extraction):
        extraction = await extraction
    if extraction is None:
        return SmsOutcome(status="skipped", reason="non-financial")

    direction = "income" if extraction.type == "credit" else "expense"
    categorization = categorize_transaction(extraction.description, extraction.amount)

    payload = TransactionPayload(
        amount=extraction.amount,
        description=extraction.description,
        direction=direction,
        raw_text=message.message,
        category_suggestion=extraction.category or categorization.inferred_category,
    )

    event_date, event_time = resolve_event_overrides(extraction.date_of_transaction)
    options = NormalizeOptions(
        now=now,
        source=SMS_SOURCE,
        default_currency=extraction.currency or default_currency,
        extra_heuristics=build_heuristics(message, extraction),
        extra_tags=["sms-ingest", f"medium-{extraction.medium}", f"type-{extraction.type}"],
        target_party=extraction.target_party or None,
        medium=extraction.medium,
        event_date_override=event_date,
        event_time_override=event_time,
    )

    try:
        result = await pipeline.ingest(payload, categorization, options)
    except InvalidPayload as e:
        logger.warning("sms.invalid_payload", sender=message.sender, error=str(e))
        return SmsOutcome(status="skipped", reason="invalid")

    if isinstance(result, IngestSuppressed):
        return SmsOutcome(
            status="suppressed",
            reason=result.reason,
            transaction=result.transaction,
            duplicate_of=result.duplicate_of,
        )
    if isinstance(result, IngestDuplicate):
        return SmsOutcome(
            status="duplicate",
            transaction=result.transaction,
            duplicate_of=result.duplicate_of,
            pending_id=result.pending_id,
        )

    if sms_log is not None:
        sms_log.record(message, result.transaction)

    return SmsOutcome(status="processed", transaction=result.transaction)


async def ingest_sms_export(
    path: Union[Path, str],
    pipeline: IngestPipeline,
    extractor: Optional[Extractor] = None,
    sms_log: Optional[SmsLog] = None,
    now: Optional[datetime] = None,
    default_currency: Optional[str] = None,
    on_processed: Optional[Callable[[SmsOutcome, SmsMessage], Any]] = None,
) -> SmsIngestSummary:
    """
    Ingest every message of a JSON SMS export.

    A failing message is counted and logged; it never aborts the batch.

    Raises:
        OSError: If the export cannot be read
        pydantic.ValidationError: If the export is not valid JSON of the expected shape
    """
    export = SmsExport.model_validate_json(Path(path).read_text(encoding="utf-8"))

    summary = SmsIngestSummary()
    if export.owner:
        summary.owner_name = export.owner.name
        summary.owner_phone = export.owner.phone

    logger.info("sms.ingest_started", path=str(path), messages=len(export.messages))

    for message in export.messages:
        try:
            if not is_financial(message):
                summary.skipped += 1
                continue

            outcome = await process_sms_message(
                message,
                pipeline,
                extractor=extractor,
                sms_log=sms_log,
                now=now,
                default_currency=default_currency,
            )

            if outcome.status == "processed":
                summary.processed += 1
                if on_processed is not None:
                    callback_result = on_processed(outcome, message)
                    if inspect.isawaitable(callback_result):
                        await callback_result
            elif outcome.status == "suppressed":
                summary.suppressed += 1
            elif outcome.status == "duplicate":
                summary.duplicates += 1
            else:
                summary.skipped += 1
        except Exception as e:
            summary.errors += 1
            logger.error(
                "sms.ingest_failed",
                sender=message.sender,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )

    logger.info("sms.ingest_completed", **summary.model_dump())
    return summary
