"""Duplicate key derivation and the auto-suppression policy."""

from __future__ import annotations

from datetime import datetime, time
from decimal import ROUND_HALF_UP, Decimal

from ledger.dedup.config import DedupConfig
from ledger.dedup.models import (
    EXACT_MATCH_WITHIN_WINDOW,
    SuppressionDecision,
    SuppressionOutcome,
)
from ledger.normalization.models import NormalizedTransaction

_CENT = Decimal("0.01")


def _norm(value: str | None) -> str:
    return (value or "").strip().lower()


def build_duplicate_key(transaction: NormalizedTransaction) -> str:
    """
    Build the composite fingerprint used for duplicate lookup.

    The key is derived on demand and never stored; it is not the record
    identity. Components: direction, amount rounded to cents, currency,
    event date, event time (or empty), description and counterparty.
    """
    amount = transaction.amount.quantize(_CENT, rounding=ROUND_HALF_UP)
    return "|".join(
        [
            transaction.direction,
            f"{amount:.2f}",
            transaction.currency.strip().upper(),
            transaction.event_date.isoformat(),
            transaction.event_time or "",
            _norm(transaction.description),
            _norm(transaction.meta.target_party),
        ]
    )


def _wall_clock(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.replace(tzinfo=None)


def resolve_transaction_timestamp(transaction: NormalizedTransaction) -> datetime | None:
    """
    Resolve a comparable (naive, wall-clock) timestamp for a record.

    Prefers event date + time. A date-only record recorded on its event
    date is pinned to its recording instant; otherwise the event date alone
    (start of day) is used, then the recording instant.

    The same-day pin takes precedence over the start-of-day fallback so
    untimed re-sends 90 s apart suppress while ones 3 min apart escalate.
    """
    recorded = _wall_clock(transaction.recorded_at)

    if transaction.event_date:
        if transaction.event_time:
            try:
                return datetime.combine(
                    transaction.event_date, time.fromisoformat(transaction.event_time)
                )
            except ValueError:
                pass

        if recorded is not None and recorded.date() == transaction.event_date:
            return recorded

        return datetime.combine(transaction.event_date, time.min)

    return recorded


def evaluate_suppression(
    candidate: NormalizedTransaction,
    existing: NormalizedTransaction,
    config: DedupConfig | None = None,
) -> SuppressionDecision:
    """
    Decide whether a colliding submission is an exact re-send.

    Cheap field checks run before any timestamp work.

    Args:
        candidate: Newly normalized record
        existing: Record already in the index under the same key
        config: Thresholds (defaults to DedupConfig())

    Returns:
        SuppressionDecision tagged suppress / escalate / distinct
    """
    config = config or DedupConfig()

    if candidate.currency.strip().upper() != existing.currency.strip().upper():
        return SuppressionDecision(outcome=SuppressionOutcome.ESCALATE, reason="currency-mismatch")

    if abs(candidate.amount - existing.amount) > Decimal(str(config.amount_tolerance)):
        return SuppressionDecision(outcome=SuppressionOutcome.ESCALATE, reason="amount-mismatch")

    candidate_target = _norm(candidate.meta.target_party)
    existing_target = _norm(existing.meta.target_party)
    if candidate_target and existing_target and candidate_target != existing_target:
        return SuppressionDecision(
            outcome=SuppressionOutcome.ESCALATE, reason="counterparty-mismatch"
        )

    candidate_description = _norm(candidate.description)
    existing_description = _norm(existing.description)
    if candidate_description and existing_description:
        distance = abs(len(candidate_description) - len(existing_description))
        if (
            distance > config.description_length_tolerance
            and candidate_description != existing_description
        ):
            return SuppressionDecision(
                outcome=SuppressionOutcome.ESCALATE, reason="description-mismatch"
            )

    candidate_ts = resolve_transaction_timestamp(candidate)
    existing_ts = resolve_transaction_timestamp(existing)
    if candidate_ts is None or existing_ts is None:
        return SuppressionDecision(
            outcome=SuppressionOutcome.ESCALATE, reason="timestamp-unresolvable"
        )

    delta = abs((candidate_ts - existing_ts).total_seconds())
    if delta <= config.window_seconds:
        return SuppressionDecision(
            outcome=SuppressionOutcome.SUPPRESS,
            reason=EXACT_MATCH_WITHIN_WINDOW,
            delta_seconds=delta,
        )

    return SuppressionDecision(
        outcome=SuppressionOutcome.DISTINCT, reason="outside-window", delta_seconds=delta
    )
