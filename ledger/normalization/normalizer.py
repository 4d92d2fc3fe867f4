"""Core normalization functions for raw transaction submissions."""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

from ledger.core.errors import InvalidPayload
from ledger.normalization.categorize import categorize_transaction
from ledger.normalization.models import (
    CategorizationResult,
    Direction,
    NormalizedTransaction,
    NormalizeOptions,
    TransactionMeta,
    TransactionPayload,
)

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "INR"
DEFAULT_SOURCE = "mill-chat"


# ============================================================================
# Currency Detection
# ============================================================================

# Priority order: first pattern that matches the lower-cased raw text wins.
CURRENCY_MARKERS: list[tuple[str, re.Pattern[str], str]] = [
    ("INR", re.compile(r"₹|\b(?:inr|rs)\b|\brs\.?(?=\d)"), "currency: detected INR glyph or token"),
    ("USD", re.compile(r"\$|\busd\b"), "currency: detected USD marker"),
    ("EUR", re.compile(r"€|\beur\b"), "currency: detected EUR marker"),
]

DIRECTION_ALIASES: dict[str, Direction] = {
    "expense": "expense",
    "income": "income",
    "debit": "expense",
    "credit": "income",
}


def normalize_currency(currency_str: str | None) -> str | None:
    """
    Normalize a currency code to its upper-case form.

    Args:
        currency_str: Currency code such as "inr" or " USD "

    Returns:
        Upper-case code or None when empty
    """
    if currency_str is None:
        return None

    cleaned = str(currency_str).strip().upper()
    return cleaned or None


def detect_currency(raw_text: str, fallback: str, heuristics: list[str]) -> str:
    """
    Detect the currency named in raw text.

    Args:
        raw_text: Original submission text
        fallback: Currency to use when no marker is found
        heuristics: List the applied heuristic is appended to

    Returns:
        ISO-style currency code
    """
    normalized = (raw_text or "").lower()

    for code, pattern, heuristic in CURRENCY_MARKERS:
        if pattern.search(normalized):
            heuristics.append(heuristic)
            return code

    return fallback


# ============================================================================
# Amount & Direction Normalization
# ============================================================================

def normalize_amount(amount: Any) -> Decimal | None:
    """
    Normalize amount to Decimal.

    Handles:
    - 75 -> Decimal('75')
    - 75.5 -> Decimal('75.5')
    - "1,250.00" -> Decimal('1250.00')
    - "₹ 300" -> Decimal('300')

    Returns None when the value is not a finite number.
    """
    if amount is None or isinstance(amount, bool):
        return None

    if isinstance(amount, Decimal):
        value = amount
    elif isinstance(amount, (int, float)):
        try:
            value = Decimal(str(amount))
        except (InvalidOperation, ValueError):
            return None
    else:
        cleaned = str(amount).strip()
        for marker in ("₹", "$", "€"):
            cleaned = cleaned.replace(marker, "")
        cleaned = cleaned.replace(",", "")
        cleaned = re.sub(r"^\s*(?:INR|RS\.?|USD|EUR)\s*", "", cleaned, flags=re.IGNORECASE)
        cleaned = cleaned.strip()
        if not cleaned:
            return None
        try:
            value = Decimal(cleaned)
        except InvalidOperation:
            logger.debug("Could not parse amount %r", amount)
            return None

    if not value.is_finite():
        return None

    return value


def normalize_direction(direction: str | None) -> Direction | None:
    """Map a direction string (expense/income/debit/credit) to its canonical value."""
    if direction is None:
        return None
    return DIRECTION_ALIASES.get(str(direction).strip().lower())


# ============================================================================
# Temporal Resolution
# ============================================================================

ISO_DATE_RE = re.compile(r"(?<!\d)(\d{4})-(\d{2})-(\d{2})(?!\d)")
SLASH_DATE_RE = re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{2,4})\b")
SHORT_DATE_RE = re.compile(r"\b(\d{1,2})-(\d{1,2})\b")
YESTERDAY_RE = re.compile(r"\b(yesterday|last night)\b", re.IGNORECASE)
TODAY_RE = re.compile(r"\b(today|tonight|this morning)\b", re.IGNORECASE)
LAST_WEEK_RE = re.compile(r"\b(last week)\b", re.IGNORECASE)
MERIDIEM_TIME_RE = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*(am|pm)\b", re.IGNORECASE)
CLOCK_TIME_RE = re.compile(r"(?<!\d)(\d{1,2}):(\d{2})(?::(\d{2}))?(?!\d)")
MIDNIGHT = "00:00:00"


@dataclass
class TemporalContext:
    """Event date/time resolved from free text."""

    event_date: date
    event_time: str | None = None
    heuristic: str | None = None
    phrase: str | None = None


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def format_time(hour: int, minute: int, second: int = 0, meridiem: str | None = None) -> str | None:
    """
    Format a clock time as HH:MM:SS.

    Args:
        hour: Hour as written (1-12 with a meridiem, 0-23 otherwise)
        minute: Minute
        second: Second
        meridiem: "am" / "pm" or None

    Returns:
        Formatted time or None when out of range
    """
    if minute > 59 or second > 59:
        return None

    if meridiem:
        lower = meridiem.lower()
        if hour < 1 or hour > 12:
            return None
        if lower == "pm" and hour < 12:
            hour += 12
        if lower == "am" and hour == 12:
            hour = 0
    elif hour > 23:
        return None

    return f"{hour:02d}:{minute:02d}:{second:02d}"


def normalize_event_time(value: str | None) -> str | None:
    """Normalize "H:MM", "HH:MM:SS" or "7pm" to HH:MM:SS; None if unparseable."""
    if value is None:
        return None

    text = str(value).strip()
    if not text:
        return None

    match = CLOCK_TIME_RE.fullmatch(text)
    if match:
        hour, minute, second = match.groups()
        return format_time(int(hour), int(minute), int(second or 0))

    match = MERIDIEM_TIME_RE.fullmatch(text)
    if match:
        hour, minute, meridiem = match.groups()
        return format_time(int(hour), int(minute or 0), meridiem=meridiem)

    return None


def _detect_event_date(raw_text: str, today: date) -> tuple[date, str | None, str | None]:
    iso_match = ISO_DATE_RE.search(raw_text)
    if iso_match:
        year, month, day = (int(part) for part in iso_match.groups())
        parsed = _safe_date(year, month, day)
        if parsed:
            return parsed, "time: matched iso date", iso_match.group(0)

    slash_match = SLASH_DATE_RE.search(raw_text)
    if slash_match:
        dd, mm, yy = slash_match.groups()
        year = int(f"20{yy}") if len(yy) == 2 else int(yy)
        parsed = _safe_date(year, int(mm), int(dd))
        if parsed:
            return parsed, "time: matched slash date", slash_match.group(0)

    short_match = SHORT_DATE_RE.search(raw_text)
    if short_match:
        dd, mm = short_match.groups()
        parsed = _safe_date(today.year, int(mm), int(dd))
        if parsed:
            return parsed, "time: matched short date", short_match.group(0)

    yesterday_match = YESTERDAY_RE.search(raw_text)
    if yesterday_match:
        return today - timedelta(days=1), "time: matched 'yesterday' phrase", yesterday_match.group(0)

    today_match = TODAY_RE.search(raw_text)
    if today_match:
        return today, "time: matched 'today' phrase", today_match.group(0)

    last_week_match = LAST_WEEK_RE.search(raw_text)
    if last_week_match:
        return today - timedelta(days=7), "time: matched 'last week' phrase", last_week_match.group(0)

    return today, None, None


def _detect_event_time(raw_text: str) -> str | None:
    match = MERIDIEM_TIME_RE.search(raw_text)
    if match:
        hour, minute, meridiem = match.groups()
        formatted = format_time(int(hour), int(minute or 0), meridiem=meridiem)
        if formatted:
            return formatted

    match = CLOCK_TIME_RE.search(raw_text)
    if match:
        hour, minute, second = match.groups()
        return format_time(int(hour), int(minute), int(second or 0))

    return None


def detect_temporal_context(raw_text: str, now: datetime) -> TemporalContext:
    """
    Resolve the event date and time mentioned in raw text.

    Date candidates are tried in priority order (ISO date, slash date,
    short day-month, relative phrase); the first valid one wins and the
    default is the date of ``now``. A clock time is detected independently.
    """
    text = raw_text or ""
    event_date, heuristic, phrase = _detect_event_date(text, now.date())
    event_time = _detect_event_time(text)

    if event_time and heuristic is None:
        heuristic = "time: matched explicit time"

    return TemporalContext(
        event_date=event_date,
        event_time=event_time,
        heuristic=heuristic,
        phrase=phrase,
    )


# ============================================================================
# Tags & Summary
# ============================================================================

SOCIAL_RE = re.compile(r"friends|party|celebration", re.IGNORECASE)
HOUSEHOLD_RE = re.compile(r"rent|bill|utility", re.IGNORECASE)


def category_slug(category: str) -> str:
    return re.sub(r"\s+", "-", (category or "").strip().lower())


def build_tags(
    payload: TransactionPayload,
    direction: Direction,
    categorization: CategorizationResult,
    category: str,
    extra_tags: list[str] | None = None,
) -> list[str]:
    """Build the de-duplicated tag list for a transaction."""
    tags: list[str] = []

    def add(tag: str) -> None:
        if tag and tag not in tags:
            tags.append(tag)

    add(direction)
    add(categorization.flavor)
    add(category_slug(category))

    if SOCIAL_RE.search(payload.raw_text):
        add("social")

    if HOUSEHOLD_RE.search(payload.raw_text):
        add("household")

    for tag in extra_tags or []:
        if not tag:
            continue
        add(tag.strip().lower())

    return tags


def build_summary(
    direction: Direction,
    amount: Decimal,
    currency: str,
    description: str,
    event_date: date,
    flavor: str,
) -> str:
    verb = "received" if direction == "income" else "spent"
    return f"{verb} {currency} {amount} for {description} on {event_date.isoformat()} ({flavor})."


# ============================================================================
# Main Normalization Function
# ============================================================================

def normalize_transaction(
    payload: TransactionPayload | dict[str, Any],
    categorization: CategorizationResult | None = None,
    options: NormalizeOptions | None = None,
) -> NormalizedTransaction:
    """
    Normalize a raw submission into a canonical transaction record.

    Args:
        payload: Raw submission (model or plain dict)
        categorization: Flavor/category decision; inferred when omitted
        options: Contextual hints and explicit overrides

    Returns:
        NormalizedTransaction with a freshly generated id

    Raises:
        InvalidPayload: If the amount is not a finite non-negative number
            or the direction is not expense/income
    """
    if not isinstance(payload, TransactionPayload):
        try:
            payload = TransactionPayload.model_validate(payload)
        except ValueError as e:
            raise InvalidPayload(f"Malformed transaction payload: {e}") from e

    options = options or NormalizeOptions()

    amount = normalize_amount(payload.amount)
    if amount is None:
        raise InvalidPayload(f"Amount must be a finite number, got {payload.amount!r}", field="amount")
    if amount < 0:
        raise InvalidPayload(f"Amount must be non-negative, got {amount}", field="amount")

    direction = normalize_direction(payload.direction)
    if direction is None:
        raise InvalidPayload(
            f"Direction must be 'expense' or 'income', got {payload.direction!r}",
            field="direction",
        )

    now = options.now or datetime.now().astimezone()
    categorization = categorization or categorize_transaction(payload.description, amount)

    heuristics: list[str] = []
    temporal = detect_temporal_context(payload.raw_text, now)
    if temporal.heuristic:
        heuristics.append(temporal.heuristic)
    heuristics.extend(options.extra_heuristics)

    fallback_currency = (
        normalize_currency(options.default_currency) or DEFAULT_CURRENCY
    )
    currency = detect_currency(payload.raw_text, fallback_currency, heuristics)

    event_date = options.event_date_override or temporal.event_date
    event_time = temporal.event_time
    if options.event_time_override is not None:
        event_time = normalize_event_time(options.event_time_override)
        if event_time is None:
            raise InvalidPayload(
                f"Invalid event time override {options.event_time_override!r}",
                field="event_time",
            )
    elif options.clear_event_time:
        event_time = None

    # Stored rows read midnight back as an unknown time.
    if event_time == MIDNIGHT:
        event_time = None

    category = payload.category_suggestion.strip() or categorization.inferred_category
    tags = build_tags(payload, direction, categorization, category, options.extra_tags)

    meta = TransactionMeta(
        source=options.source or DEFAULT_SOURCE,
        heuristics=heuristics,
        raw_category_suggestion=payload.category_suggestion or None,
        parsed_temporal_phrase=temporal.phrase,
        target_party=(options.target_party or "").strip() or None,
        medium=(options.medium or "").strip() or None,
        owner_phone=options.owner_phone,
    )

    return NormalizedTransaction(
        id=str(uuid.uuid4()),
        recorded_at=now,
        event_date=event_date,
        event_time=event_time,
        direction=direction,
        amount=amount,
        currency=currency,
        category=category,
        flavor=categorization.flavor,
        description=payload.description,
        raw_text=payload.raw_text,
        tags=tags,
        structured_summary=build_summary(
            direction, amount, currency, payload.description, event_date, categorization.flavor
        ),
        meta=meta,
    )
