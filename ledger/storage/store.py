"""
Append-only CSV transaction store.

One TransactionStore owns one store path: the file pair on disk, the
duplicate index, the set of known transaction ids and the lock that
serializes every mutation of them. Collaborators receive the store by
reference; there is no module-level state.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

import structlog

from ledger.core.errors import StoreError
from ledger.dedup.index import DuplicateIndex
from ledger.normalization.models import AnalyticsMetadata, NormalizedTransaction
from ledger.storage.atomic import append_line, ensure_csv_file
from ledger.storage.config import StoreConfig
from ledger.storage.csv_codec import (
    ANALYTICS_HEADER,
    TRANSACTION_HEADER,
    analytics_to_row,
    parse_line,
    parse_recorded_at,
    row_to_transaction,
    transaction_to_row,
)

logger = structlog.get_logger()


def read_recorded_at(path: Path) -> dict[str, datetime]:
    """Map transaction ids to their recording instant from an analytics file."""
    recorded: dict[str, datetime] = {}
    path = Path(path)
    if not path.exists():
        return recorded

    lines = path.read_text(encoding="utf-8").split("\n")
    for line in lines[1:]:
        parsed = parse_recorded_at(parse_line(line))
        if parsed:
            recorded[parsed[0]] = parsed[1]
    return recorded


def read_transactions(
    path: Path, recorded_at: Optional[dict[str, datetime]] = None
) -> list[NormalizedTransaction]:
    """
    Read every well-formed record from a store file in acceptance order.

    Malformed rows are logged and skipped; one bad line never prevents the
    rest of the file from loading.

    Args:
        path: Store file
        recorded_at: Optional id -> recording instant lookup

    Returns:
        List of canonical records

    Raises:
        OSError: If the file cannot be read
    """
    recorded_at = recorded_at or {}
    lines = Path(path).read_text(encoding="utf-8").split("\n")

    records: list[NormalizedTransaction] = []
    for line_number, line in enumerate(lines[1:], start=2):
        values = parse_line(line)
        if not values:
            continue
        transaction_id = values[1] if len(values) > 1 else ""
        try:
            record = row_to_transaction(values, recorded_at.get(transaction_id))
        except ValueError as e:
            logger.warning(
                "store.malformed_row",
                path=str(path),
                line=line_number,
                error=str(e),
            )
            continue
        records.append(record)

    return records


def load_transactions(path: Path | str) -> list[NormalizedTransaction]:
    """Read-only loader for collaborators that only consume the store file."""
    path = Path(path)
    if not path.exists():
        return []
    return read_transactions(path)


class TransactionStore:
    """
    Durable, append-only store of canonical records.

    Construction creates or repairs both CSV files and replays the store
    once into the duplicate index and the known-id set.
    """

    def __init__(self, config: Optional[StoreConfig] = None):
        """
        Initialize the store.

        Args:
            config: Store configuration (defaults to StoreConfig())

        Raises:
            StoreError: If either file cannot be created or repaired
        """
        self.config = config or StoreConfig()
        self.transactions_path = self.config.transactions_path
        self.analytics_path = self.config.analytics_path

        self.lock = asyncio.Lock()
        self.index = DuplicateIndex()
        self._known_ids: set[str] = set()

        for path, header in (
            (self.transactions_path, TRANSACTION_HEADER),
            (self.analytics_path, ANALYTICS_HEADER),
        ):
            try:
                ensure_csv_file(path, header)
            except OSError as e:
                raise StoreError(f"Cannot prepare CSV file {path}: {e}", str(path)) from e

        self._seed()

        logger.info(
            "store.initialized",
            path=str(self.transactions_path),
            records=len(self._known_ids),
            index_size=len(self.index),
        )

    def _seed(self) -> None:
        """Replay the store file; failures degrade to an empty history."""
        try:
            recorded_at = read_recorded_at(self.analytics_path)
            records = read_transactions(self.transactions_path, recorded_at)
        except Exception as e:
            logger.error(
                "store.seed_failed",
                path=str(self.transactions_path),
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return

        for record in records:
            self._known_ids.add(record.id)
            self.index.add(record)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_records(self) -> list[NormalizedTransaction]:
        """Re-read the store file. Safe to call from a worker thread."""
        return read_transactions(self.transactions_path)

    def find_duplicate(self, transaction: NormalizedTransaction) -> NormalizedTransaction | None:
        return self.index.lookup(transaction)

    def is_known(self, transaction_id: str) -> bool:
        return transaction_id in self._known_ids

    def mark_known(self, transaction_ids: Iterable[str]) -> None:
        self._known_ids.update(transaction_ids)

    @property
    def known_ids(self) -> frozenset[str]:
        return frozenset(self._known_ids)

    # ------------------------------------------------------------------
    # Writes (callers hold self.lock)
    # ------------------------------------------------------------------

    def append(self, transaction: NormalizedTransaction) -> None:
        """
        Append a record and index it.

        The row is written before the in-memory state changes, so a failed
        write leaves index and known ids untouched.

        Raises:
            OSError: If the row cannot be written
        """
        append_line(self.transactions_path, transaction_to_row(transaction), fsync=self.config.fsync)
        self._known_ids.add(transaction.id)
        self.index.add(transaction)

        logger.info(
            "store.append",
            transaction_id=transaction.id,
            direction=transaction.direction,
            amount=str(transaction.amount),
            currency=transaction.currency,
        )

    def append_analytics(self, metadata: AnalyticsMetadata) -> None:
        """Append one analytics row."""
        append_line(self.analytics_path, analytics_to_row(metadata), fsync=self.config.fsync)
        logger.debug("store.analytics_append", transaction_id=metadata.transaction_id)
