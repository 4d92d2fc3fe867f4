"""SMS export ingestion into the transaction pipeline."""

from ledger.sms.ingest import (
    extract_from_fields,
    ingest_sms_export,
    is_financial,
    process_sms_message,
    resolve_event_overrides,
)
from ledger.sms.log import SmsLog, build_fingerprint
from ledger.sms.models import (
    SmsExport,
    SmsExtraction,
    SmsIngestSummary,
    SmsMessage,
    SmsOutcome,
    SmsOwner,
)

__all__ = [
    "SmsExport",
    "SmsExtraction",
    "SmsIngestSummary",
    "SmsLog",
    "SmsMessage",
    "SmsOutcome",
    "SmsOwner",
    "build_fingerprint",
    "extract_from_fields",
    "ingest_sms_export",
    "is_financial",
    "process_sms_message",
    "resolve_event_overrides",
]
