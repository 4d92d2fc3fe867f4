"""In-memory duplicate index keyed by the composite fingerprint."""

from __future__ import annotations

from ledger.dedup.policy import build_duplicate_key
from ledger.normalization.models import NormalizedTransaction


class DuplicateIndex:
    """
    Map from duplicate key to the most recent record sharing that key.

    Owned by a TransactionStore; callers mutate it only inside the store's
    critical section.
    """

    def __init__(self) -> None:
        self._entries: dict[str, NormalizedTransaction] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, transaction: NormalizedTransaction) -> NormalizedTransaction | None:
        """
        Find the indexed record colliding with ``transaction``.

        A record is never its own duplicate, so replaying an already indexed
        record returns None.
        """
        existing = self._entries.get(build_duplicate_key(transaction))
        if existing is None or existing.id == transaction.id:
            return None
        return existing

    def add(self, transaction: NormalizedTransaction) -> None:
        """Insert or replace the entry for the record's key."""
        self._entries[build_duplicate_key(transaction)] = transaction

    def clear(self) -> None:
        self._entries.clear()
