"""
Transaction ingestion pipeline.

Single entry point for chat and SMS collaborators: normalizes a submission,
checks it against the duplicate index and either writes it, suppresses it
as an exact re-send, or holds it for a human decision.
"""

import inspect
from typing import Any, Callable, Dict, List, Optional, Union

import structlog

from ledger.core.config import get_settings
from ledger.core.errors import (
    DuplicateTransaction,
    InvalidPayload,
    SuppressedDuplicate,
)
from ledger.dedup.models import (
    PendingDuplicate,
    ResolutionAction,
    ResolutionResult,
    SuppressionOutcome,
)
from ledger.dedup.policy import evaluate_suppression
from ledger.dedup.resolver import DuplicateHandler, DuplicateResolver
from ledger.monitor.watcher import CsvChangeMonitor, RecordsCallback, StopFn
from ledger.normalization.models import (
    AnalyticsMetadata,
    CategorizationResult,
    NormalizedTransaction,
    NormalizeOptions,
    TransactionPayload,
)
from ledger.normalization.normalizer import normalize_transaction
from ledger.pipeline.config import LedgerConfig
from ledger.pipeline.metrics import IngestMetrics
from ledger.pipeline.models import (
    IngestDuplicate,
    IngestLogged,
    IngestResult,
    IngestSuppressed,
)
from ledger.storage.store import TransactionStore

logger = structlog.get_logger()


class IngestPipeline:
    """
    Ingestion service bound to one transaction store.

    The store's lock is the single critical section for appends, index
    updates and pending-table changes.
    """

    def __init__(
        self,
        config: Optional[LedgerConfig] = None,
        store: Optional[TransactionStore] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Pipeline configuration (defaults to LedgerConfig())
            store: Existing store handle (defaults to one built from config)
        """
        self.config = config or LedgerConfig()
        self.store = store or TransactionStore(self.config.store)
        self.resolver = DuplicateResolver(self.store, self.config.dedup)
        self.metrics = IngestMetrics()
        self._monitors: List[CsvChangeMonitor] = []

        logger.info(
            "pipeline.initialized",
            store=str(self.store.transactions_path),
            window_seconds=self.config.dedup.window_seconds,
            default_currency=self.config.default_currency,
        )

    @classmethod
    def from_settings(cls, settings) -> "IngestPipeline":
        """Create a pipeline from app settings."""
        return cls(LedgerConfig.from_settings(settings))

    def _with_defaults(self, options: Optional[NormalizeOptions]) -> NormalizeOptions:
        options = options or NormalizeOptions()
        return options.model_copy(
            update={
                "default_currency": options.default_currency or self.config.default_currency,
                "source": options.source or self.config.default_source,
                "owner_phone": options.owner_phone or self.config.owner_phone,
            }
        )

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def ingest(
        self,
        payload: Union[TransactionPayload, Dict[str, Any]],
        categorization: Optional[CategorizationResult] = None,
        options: Optional[NormalizeOptions] = None,
    ) -> IngestResult:
        """
        Normalize, deduplicate and store one submission.

        Args:
            payload: Raw submission
            categorization: Flavor/category decision (inferred when omitted)
            options: Contextual hints and overrides

        Returns:
            IngestLogged, IngestSuppressed or IngestDuplicate

        Raises:
            InvalidPayload: If the amount or direction is invalid
            OSError: If the store cannot be written
        """
        try:
            transaction = normalize_transaction(payload, categorization, self._with_defaults(options))
        except InvalidPayload as e:
            self.metrics.record_ingest("invalid")
            logger.warning("ingest.invalid_payload", error=str(e), field=e.field)
            raise

        try:
            metadata = await self.save_transaction(transaction)
        except SuppressedDuplicate as e:
            self.metrics.record_ingest("suppressed")
            return IngestSuppressed(
                transaction=transaction, duplicate_of=e.existing, reason=e.reason
            )
        except DuplicateTransaction as e:
            self.metrics.record_ingest("duplicate")
            return IngestDuplicate(
                transaction=transaction, duplicate_of=e.existing, pending_id=e.pending_id
            )

        self.metrics.record_ingest("logged")
        return IngestLogged(transaction=transaction, metadata=metadata)

    async def save_transaction(self, transaction: NormalizedTransaction) -> AnalyticsMetadata:
        """
        Store a normalized record unless it collides with an indexed one.

        Duplicate handlers run after the critical section is released, so a
        handler may resolve the entry it is told about.

        Returns:
            Analytics metadata emitted for the stored record

        Raises:
            SuppressedDuplicate: Exact re-send within the suppression window
            DuplicateTransaction: Collision held for a human decision
        """
        async with self.store.lock:
            existing = self.store.find_duplicate(transaction)

            if existing is None:
                self.store.append(transaction)
                metadata = AnalyticsMetadata.from_transaction(transaction)
                self.store.append_analytics(metadata)
                logger.info(
                    "ingest.logged",
                    transaction_id=transaction.id,
                    source=transaction.meta.source,
                )
                return metadata

            decision = evaluate_suppression(transaction, existing, self.config.dedup)
            if decision.suppressed:
                logger.info(
                    "ingest.suppressed",
                    transaction_id=transaction.id,
                    existing_id=existing.id,
                    reason=decision.reason,
                    delta_seconds=decision.delta_seconds,
                )
                raise SuppressedDuplicate(transaction, existing, decision.reason)

            # Outside the window the key still collides, so a human decides.
            if decision.outcome == SuppressionOutcome.DISTINCT:
                logger.info(
                    "ingest.outside_window",
                    transaction_id=transaction.id,
                    delta_seconds=decision.delta_seconds,
                )

            pending = self.resolver.register(transaction, existing)
            logger.info(
                "ingest.escalated",
                transaction_id=transaction.id,
                existing_id=existing.id,
                reason=decision.reason,
            )

        await self.resolver.notify(pending)
        raise DuplicateTransaction(pending.pending_id, existing)

    # ------------------------------------------------------------------
    # Duplicate resolution
    # ------------------------------------------------------------------

    async def resolve_duplicate(
        self, pending_id: str, action: Union[ResolutionAction, str]
    ) -> ResolutionResult:
        """Apply "record" or "ignore" to a pending duplicate."""
        result = await self.resolver.resolve(pending_id, action)
        self.metrics.record_resolution(result.status)
        return result

    def list_pending_duplicates(self) -> List[PendingDuplicate]:
        return self.resolver.list_pending()

    def on_duplicate(self, handler: DuplicateHandler) -> Callable[[], None]:
        """Subscribe to new pending duplicates; returns the unsubscribe function."""
        return self.resolver.on_duplicate(handler)

    # ------------------------------------------------------------------
    # Change monitor
    # ------------------------------------------------------------------

    async def start_csv_monitor(self, handler: RecordsCallback) -> StopFn:
        """
        Watch the store file for records written outside this pipeline.

        Args:
            handler: Called with each batch of newly seen records

        Returns:
            Idempotent async stop function
        """
        monitor = CsvChangeMonitor(self.store, self.config.monitor)

        async def on_new_records(records: List[NormalizedTransaction]) -> None:
            self.metrics.external_records += len(records)
            result = handler(records)
            if inspect.isawaitable(result):
                await result

        self._monitors.append(monitor)
        return await monitor.start(on_new_records)

    async def stop_monitors(self) -> None:
        """Stop every monitor started by this pipeline."""
        for monitor in self._monitors:
            await monitor.stop()

    def get_metrics(self) -> Dict[str, Any]:
        """Snapshot of pipeline counters including monitor activity."""
        self.metrics.monitor_scans = sum(m.scan_count for m in self._monitors)
        self.metrics.monitor_failures = sum(m.failure_count for m in self._monitors)
        data = self.metrics.to_dict()
        data["pending_duplicates"] = len(self.resolver)
        data["known_records"] = len(self.store.known_ids)
        return data


def create_pipeline(settings=None) -> IngestPipeline:
    """Build a pipeline from settings (defaults to the cached app settings)."""
    return IngestPipeline.from_settings(settings or get_settings())
