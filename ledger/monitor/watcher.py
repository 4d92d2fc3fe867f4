"""
Store change monitor.

Detects records that reached the store file without going through the
store's own write path (for example a hand edit) and hands them to a
callback. The file's (mtime, size) signature is sampled on an interval;
bursts of changes are debounced into a single full re-scan, which runs in a
worker thread and is diffed against the store's known ids.
"""

import asyncio
import inspect
import os
from typing import Any, Awaitable, Callable, Optional, Set, Tuple, Union

import structlog

from ledger.monitor.config import MonitorConfig
from ledger.normalization.models import NormalizedTransaction
from ledger.storage.store import TransactionStore

logger = structlog.get_logger()

RecordsCallback = Callable[[list[NormalizedTransaction]], Union[Awaitable[Any], Any]]
StopFn = Callable[[], Awaitable[None]]

FileSignature = Optional[Tuple[int, int]]


class CsvChangeMonitor:
    """
    Watches one store file and reports ids the store has never seen.

    A monitor instance is started once; ``start`` returns the stop function.
    """

    def __init__(self, store: TransactionStore, config: Optional[MonitorConfig] = None):
        """
        Initialize the monitor.

        Args:
            store: Store whose file and known ids are watched
            config: Monitor configuration (defaults to MonitorConfig())
        """
        self.store = store
        self.config = config or MonitorConfig()

        self._callback: Optional[RecordsCallback] = None
        self._running = False
        self._stopped = False
        self._task: Optional[asyncio.Task] = None
        self._debounce: Optional[asyncio.TimerHandle] = None
        self._scans: Set[asyncio.Task] = set()
        self._signature: FileSignature = None

        self.scan_count = 0
        self.failure_count = 0
        self.records_found = 0

    @property
    def running(self) -> bool:
        return self._running

    def _read_signature(self) -> FileSignature:
        try:
            stat = os.stat(self.store.transactions_path)
        except FileNotFoundError:
            return None
        return stat.st_mtime_ns, stat.st_size

    async def start(self, on_new_records: RecordsCallback) -> StopFn:
        """
        Start watching.

        Args:
            on_new_records: Called with the list of newly seen records

        Returns:
            Idempotent async stop function
        """
        if self._running:
            logger.warning("monitor.already_running", path=str(self.store.transactions_path))
            return self.stop
        if self._stopped:
            raise RuntimeError("CsvChangeMonitor cannot be restarted after stop()")

        self._callback = on_new_records
        self._running = True
        self._signature = self._read_signature()

        logger.info(
            "monitor.started",
            path=str(self.store.transactions_path),
            debounce_ms=self.config.debounce_ms,
            poll_interval_ms=self.config.poll_interval_ms,
        )

        if self.config.initial_scan:
            await self.scan_once()

        self._task = asyncio.create_task(self._watch_loop())
        return self.stop

    async def stop(self) -> None:
        """
        Stop watching. Safe to call repeatedly and while a scan is in flight.

        A scan already reading the file is left to finish; its results are
        discarded.
        """
        if self._stopped:
            return

        self._stopped = True
        self._running = False

        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        in_flight = [task for task in self._scans if task is not asyncio.current_task()]
        if in_flight:
            await asyncio.gather(*in_flight, return_exceptions=True)

        logger.info("monitor.stopped", path=str(self.store.transactions_path))

    async def _watch_loop(self) -> None:
        """Sample the file signature until stopped."""
        while not self._stopped:
            try:
                await asyncio.sleep(self.config.poll_interval_seconds)
                signature = self._read_signature()
                if signature != self._signature:
                    self._signature = signature
                    self._schedule_scan()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(
                    "monitor.watch_error",
                    error=str(e),
                    error_type=type(e).__name__,
                )

    def _schedule_scan(self) -> None:
        """(Re)arm the debounce timer."""
        if self._debounce is not None:
            self._debounce.cancel()
        loop = asyncio.get_running_loop()
        self._debounce = loop.call_later(self.config.debounce_seconds, self._fire_scan)

    def _fire_scan(self) -> None:
        self._debounce = None
        if self._stopped:
            return
        task = asyncio.create_task(self.scan_once())
        self._scans.add(task)
        task.add_done_callback(self._scans.discard)

    async def scan_once(self) -> list[NormalizedTransaction]:
        """
        Re-scan the store file and report unseen records.

        Read failures and callback failures are logged, never raised.

        Returns:
            Records delivered to the callback (empty if none or discarded)
        """
        if self._stopped:
            return []

        self.scan_count += 1
        try:
            records = await asyncio.to_thread(self.store.read_records)
        except Exception as e:
            self.failure_count += 1
            logger.error(
                "monitor.scan_failed",
                path=str(self.store.transactions_path),
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return []

        if self._stopped:
            logger.debug("monitor.scan_discarded", records=len(records))
            return []

        unseen: list[NormalizedTransaction] = []
        seen_in_scan: set[str] = set()
        for record in records:
            if self.store.is_known(record.id) or record.id in seen_in_scan:
                continue
            seen_in_scan.add(record.id)
            unseen.append(record)

        if not unseen:
            return []

        self.store.mark_known(seen_in_scan)
        self.records_found += len(unseen)
        logger.info(
            "monitor.new_records",
            count=len(unseen),
            transaction_ids=[record.id for record in unseen],
        )

        if self._callback is not None:
            try:
                result = self._callback(unseen)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    "monitor.callback_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )

        return unseen

    def get_status(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "path": str(self.store.transactions_path),
            "scans": self.scan_count,
            "failures": self.failure_count,
            "records_found": self.records_found,
        }
