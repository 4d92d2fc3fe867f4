"""Append-only CSV persistence for canonical transaction records."""

from ledger.storage.atomic import append_line, atomic_write, ensure_csv_file
from ledger.storage.config import StoreConfig
from ledger.storage.csv_codec import (
    ANALYTICS_HEADER,
    TRANSACTION_HEADER,
    analytics_to_row,
    parse_line,
    row_to_transaction,
    serialize_row,
    transaction_to_row,
)
from ledger.storage.store import TransactionStore, load_transactions, read_transactions

__all__ = [
    "ANALYTICS_HEADER",
    "TRANSACTION_HEADER",
    "StoreConfig",
    "TransactionStore",
    "analytics_to_row",
    "append_line",
    "atomic_write",
    "ensure_csv_file",
    "load_transactions",
    "parse_line",
    "read_transactions",
    "row_to_transaction",
    "serialize_row",
    "transaction_to_row",
]
