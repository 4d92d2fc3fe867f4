import sys
from datetime import datetime
from pathlib import Path

import pytest

# Ensure project root is on sys.path so `import ledger` works when running pytest from root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ledger.monitor.config import MonitorConfig  # noqa: E402
from ledger.normalization.models import NormalizeOptions  # noqa: E402
from ledger.normalization.normalizer import normalize_transaction  # noqa: E402
from ledger.pipeline.config import LedgerConfig  # noqa: E402
from ledger.pipeline.service import IngestPipeline  # noqa: E402
from ledger.storage.config import StoreConfig  # noqa: E402
from ledger.storage.store import TransactionStore  # noqa: E402

BASE_TIME = datetime(2025, 10, 13, 10, 0, 0)

LUNCH_PAYLOAD = {
    "amount": 75.00,
    "direction": "debit",
    "description": "lunch",
}


def lunch_options(now: datetime = BASE_TIME, **overrides) -> NormalizeOptions:
    """Options for the INR 75.00 lunch paid to a@upi."""
    values = {"now": now, "default_currency": "INR", "target_party": "a@upi"}
    values.update(overrides)
    return NormalizeOptions(**values)


def make_transaction(payload=None, now: datetime = BASE_TIME, **overrides):
    """Normalize a payload with a fixed clock."""
    return normalize_transaction(payload or LUNCH_PAYLOAD, options=lunch_options(now, **overrides))


@pytest.fixture
def store_config(tmp_path):
    """Store configuration rooted in a temporary directory."""
    return StoreConfig(data_dir=str(tmp_path / "data"))


@pytest.fixture
def store(store_config):
    """Fresh transaction store."""
    return TransactionStore(store_config)


@pytest.fixture
def ledger_config(store_config):
    """Pipeline configuration with a fast change monitor."""
    return LedgerConfig(
        store=store_config,
        monitor=MonitorConfig(debounce_ms=20, poll_interval_ms=10, initial_scan=True),
    )


@pytest.fixture
def pipeline(ledger_config):
    """Pipeline bound to a fresh store."""
    return IngestPipeline(ledger_config)
