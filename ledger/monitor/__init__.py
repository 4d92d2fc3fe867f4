"""Change monitor for records appended outside the store's write path."""

from ledger.monitor.config import MonitorConfig
from ledger.monitor.watcher import CsvChangeMonitor

__all__ = ["CsvChangeMonitor", "MonitorConfig"]
