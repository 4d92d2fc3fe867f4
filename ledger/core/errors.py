"""
Typed errors raised across the ledger boundary.

Callers use these to decide whether to tell the end user "logged",
"ignored as duplicate", or "please confirm".
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ledger.normalization.models import NormalizedTransaction


class LedgerError(Exception):
    """Base exception for ledger errors."""

    pass


class InvalidPayload(LedgerError, ValueError):
    """Raised when a submission has a bad amount or direction. Never written."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class DuplicateSignal(LedgerError):
    """Base for duplicate conditions. These are control flow, not failures."""

    def __init__(self, message: str, existing: NormalizedTransaction):
        super().__init__(message)
        self.existing = existing


class SuppressedDuplicate(DuplicateSignal):
    """Raised when a submission is judged an exact re-send and dropped."""

    def __init__(
        self,
        candidate: NormalizedTransaction,
        existing: NormalizedTransaction,
        reason: str,
    ):
        super().__init__("Duplicate transaction automatically suppressed", existing)
        self.candidate = candidate
        self.reason = reason


class DuplicateTransaction(DuplicateSignal):
    """Raised when a submission collides and waits for a human decision."""

    def __init__(self, pending_id: str, existing: NormalizedTransaction):
        super().__init__("Duplicate transaction detected", existing)
        self.pending_id = pending_id


class StoreError(LedgerError):
    """Raised when the store file cannot be brought into a usable state."""

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path
