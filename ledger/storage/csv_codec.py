"""
CSV codec for the transaction store and the analytics stream.

Rows are single-line and fully quoted; embedded newlines are flattened to a
space on write so one physical line always holds one record.
"""

from __future__ import annotations

import csv
import io
import logging
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from ledger.normalization.models import (
    AnalyticsMetadata,
    NormalizedTransaction,
    TransactionMeta,
)
from ledger.normalization.normalizer import (
    DEFAULT_SOURCE,
    normalize_direction,
    normalize_event_time,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Headers
# ============================================================================

TRANSACTION_COLUMNS = [
    "owner_phone",
    "transaction_id",
    "datetime",
    "date",
    "time",
    "amount",
    "currency",
    "type",
    "target_party",
    "description",
    "category",
    "is_financial",
    "medium",
]

ANALYTICS_COLUMNS = [
    "transaction_id",
    "recorded_at",
    "amount",
    "currency",
    "direction",
    "category",
    "flavor",
    "tags",
    "description",
    "event_date",
    "event_time",
]

TRANSACTION_HEADER = ",".join(TRANSACTION_COLUMNS)
ANALYTICS_HEADER = ",".join(ANALYTICS_COLUMNS)

START_OF_DAY = "00:00:00"
REPLAY_HEURISTIC = "store-replay"


# ============================================================================
# Row Encoding
# ============================================================================


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Decimal):
        text = format(value, "f")
    elif isinstance(value, (datetime, date)):
        text = value.isoformat()
    else:
        text = str(value)
    return text.replace("\r\n", " ").replace("\n", " ").replace("\r", " ")


def serialize_row(values: Iterable[Any]) -> str:
    """
    Serialize values as one fully-quoted CSV line (no line terminator).

    Args:
        values: Cell values; None becomes an empty string

    Returns:
        Single-line CSV row
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="")
    writer.writerow([_cell(value) for value in values])
    return buffer.getvalue()


def parse_line(line: str) -> list[str]:
    """Parse one CSV line into trimmed cell values."""
    line = line.rstrip("\r\n")
    if not line.strip():
        return []
    row = next(csv.reader([line]), [])
    return [value.strip() for value in row]


def transaction_to_row(transaction: NormalizedTransaction) -> str:
    """Encode a canonical record as a store row."""
    owner = transaction.meta.owner_phone or transaction.meta.source or ""
    return serialize_row(
        [
            owner,
            transaction.id,
            transaction.event_datetime,
            transaction.event_date,
            transaction.event_time or START_OF_DAY,
            transaction.amount,
            transaction.currency,
            transaction.direction,
            transaction.meta.target_party or "",
            transaction.description,
            transaction.category,
            "true",
            transaction.meta.medium or "",
        ]
    )


def analytics_to_row(metadata: AnalyticsMetadata) -> str:
    """Encode analytics metadata as an analytics row (tags pipe-joined)."""
    return serialize_row(
        [
            metadata.transaction_id,
            metadata.recorded_at,
            metadata.amount,
            metadata.currency,
            metadata.direction,
            metadata.category,
            metadata.flavor,
            "|".join(metadata.tags),
            metadata.description,
            metadata.event_date,
            metadata.event_time or "",
        ]
    )


# ============================================================================
# Row Decoding
# ============================================================================


def _parse_amount(raw: str) -> Decimal:
    try:
        amount = Decimal(raw)
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {raw!r}") from e
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"Invalid amount: {raw!r}")
    return amount


def _parse_event_date(raw_date: str, raw_datetime: str) -> date:
    text = raw_date or raw_datetime.split("T", 1)[0]
    if not text:
        raise ValueError("Row has neither date nor datetime")
    return date.fromisoformat(text)


def row_to_transaction(
    values: list[str], recorded_at: Optional[datetime] = None
) -> NormalizedTransaction:
    """
    Decode a store row into a canonical record.

    Tags, flavor and raw text are not stored, so replayed records carry
    defaults for them.

    Args:
        values: Parsed cell values (short rows are padded)
        recorded_at: Recording instant from the analytics stream, if known

    Returns:
        NormalizedTransaction

    Raises:
        ValueError: If the row is malformed
    """
    padded = list(values) + [""] * (len(TRANSACTION_COLUMNS) - len(values))
    (
        owner_phone,
        transaction_id,
        raw_datetime,
        raw_date,
        raw_time,
        raw_amount,
        currency,
        raw_type,
        target_party,
        description,
        category,
        _is_financial,
        medium,
    ) = padded[: len(TRANSACTION_COLUMNS)]

    if not transaction_id:
        raise ValueError("Row has no transaction_id")

    direction = normalize_direction(raw_type)
    if direction is None:
        raise ValueError(f"Invalid type: {raw_type!r}")

    event_date = _parse_event_date(raw_date, raw_datetime)

    event_time = None
    if raw_time and raw_time != START_OF_DAY:
        event_time = normalize_event_time(raw_time)
        if event_time is None:
            raise ValueError(f"Invalid time: {raw_time!r}")

    if recorded_at is None:
        recorded_at = datetime.combine(
            event_date, time.fromisoformat(event_time or START_OF_DAY)
        )

    return NormalizedTransaction(
        id=transaction_id,
        recorded_at=recorded_at,
        event_date=event_date,
        event_time=event_time,
        direction=direction,
        amount=_parse_amount(raw_amount),
        currency=currency.upper(),
        category=category,
        description=description,
        raw_text=description,
        structured_summary=description,
        meta=TransactionMeta(
            source=owner_phone or DEFAULT_SOURCE,
            heuristics=[REPLAY_HEURISTIC],
            target_party=target_party or None,
            medium=medium or None,
            owner_phone=owner_phone or None,
        ),
    )


def parse_recorded_at(values: list[str]) -> tuple[str, datetime] | None:
    """Extract (transaction_id, recorded_at) from an analytics row, if valid."""
    if len(values) < 2 or not values[0]:
        return None
    try:
        return values[0], datetime.fromisoformat(values[1])
    except ValueError:
        return None
