"""
Ingestion pipeline metrics.

In-memory counters for submissions, duplicate handling and the change
monitor. Nothing here is persisted.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


@dataclass
class IngestMetrics:
    """Counters for one pipeline instance."""

    # Submissions
    logged: int = 0
    suppressed: int = 0
    escalated: int = 0
    invalid: int = 0

    # Resolutions
    recorded: int = 0
    ignored: int = 0
    not_found: int = 0

    # Change monitor
    external_records: int = 0
    monitor_scans: int = 0
    monitor_failures: int = 0

    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_ingest_at: Optional[datetime] = None

    def record_ingest(self, status: str) -> None:
        """Count one ingest outcome (logged / suppressed / duplicate / invalid)."""
        if status == "logged":
            self.logged += 1
        elif status == "suppressed":
            self.suppressed += 1
        elif status == "duplicate":
            self.escalated += 1
        elif status == "invalid":
            self.invalid += 1
        self.last_ingest_at = datetime.now(timezone.utc)

    def record_resolution(self, status: str) -> None:
        """Count one resolution outcome (recorded / ignored / not-found)."""
        if status == "recorded":
            self.recorded += 1
        elif status == "ignored":
            self.ignored += 1
        elif status == "not-found":
            self.not_found += 1

    @property
    def total_submissions(self) -> int:
        return self.logged + self.suppressed + self.escalated + self.invalid

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for the metrics endpoint."""
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["last_ingest_at"] = self.last_ingest_at.isoformat() if self.last_ingest_at else None
        data["total_submissions"] = self.total_submissions
        return data
