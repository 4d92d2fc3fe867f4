"""
Append-only audit log of SMS messages that produced a stored transaction.

Each row pairs the raw message with the record it became. Rows are keyed by
a SHA-256 fingerprint of the message so replaying an export never logs the
same SMS twice.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from pathlib import Path

import structlog

from ledger.normalization.models import NormalizedTransaction
from ledger.sms.models import SmsMessage
from ledger.storage.atomic import append_line, ensure_csv_file
from ledger.storage.csv_codec import parse_line, serialize_row

logger = structlog.get_logger()

SMS_LOG_COLUMNS = [
    "fingerprint",
    "received_at",
    "sender",
    "message",
    "timestamp",
    "date",
    "time",
    "category",
    "score",
    "is_financial",
    "amount",
    "currency",
    "type",
    "medium",
    "target_party",
    "description",
    "extracted_date",
    "transaction_id",
    "normalized_recorded_at",
    "normalized_event_date",
    "normalized_event_time",
    "normalized_amount",
    "normalized_currency",
    "normalized_direction",
    "normalized_category",
    "normalized_flavor",
    "normalized_description",
    "normalized_summary",
    "normalized_tags",
    "normalized_heuristics",
]

SMS_LOG_HEADER = ",".join(SMS_LOG_COLUMNS)


def build_fingerprint(message: SmsMessage) -> str:
    """Stable SHA-256 over sender, body and whichever timestamps are present."""
    digest = hashlib.sha256()
    digest.update(message.sender.encode("utf-8"))
    digest.update(b"|")
    digest.update(message.message.encode("utf-8"))
    for label, value in (("ts", message.timestamp), ("date", message.date), ("time", message.time)):
        if value:
            digest.update(f"|{label}:{value}".encode("utf-8"))
    return digest.hexdigest()


class SmsLog:
    """Audit log bound to one CSV file."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._fingerprints: set[str] = set()

        ensure_csv_file(self.path, SMS_LOG_HEADER)
        self._seed()

    @classmethod
    def from_settings(cls, settings) -> SmsLog:
        """Open the audit log next to the transaction store."""
        return cls(Path(settings.DATA_DIR) / settings.SMS_LOG_FILE)

    def _seed(self) -> None:
        try:
            lines = self.path.read_text(encoding="utf-8").split("\n")
        except OSError as e:
            logger.error("sms_log.seed_failed", path=str(self.path), error=str(e))
            return

        for line in lines[1:]:
            values = parse_line(line)
            if values and values[0]:
                self._fingerprints.add(values[0])

    def __contains__(self, message: SmsMessage) -> bool:
        return build_fingerprint(message) in self._fingerprints

    def __len__(self) -> int:
        return len(self._fingerprints)

    def record(self, message: SmsMessage, transaction: NormalizedTransaction) -> bool:
        """
        Log a message and the record it produced.

        Returns:
            False if the message was already logged
        """
        fingerprint = build_fingerprint(message)
        if fingerprint in self._fingerprints:
            logger.debug("sms_log.already_logged", fingerprint=fingerprint)
            return False

        row = serialize_row(
            [
                fingerprint,
                datetime.now(timezone.utc),
                message.sender,
                message.message,
                message.timestamp,
                message.date,
                message.time,
                message.category,
                message.score,
                message.is_financial,
                message.amount,
                message.currency,
                message.type,
                transaction.meta.medium or message.medium,
                transaction.meta.target_party or message.target_party,
                message.description,
                message.extracted_date,
                transaction.id,
                transaction.recorded_at,
                transaction.event_date,
                transaction.event_time,
                transaction.amount,
                transaction.currency,
                transaction.direction,
                transaction.category,
                transaction.flavor,
                transaction.description,
                transaction.structured_summary,
                "|".join(transaction.tags),
                "|".join(transaction.meta.heuristics),
            ]
        )
        append_line(self.path, row)
        self._fingerprints.add(fingerprint)
        return True
