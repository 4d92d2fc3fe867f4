"""
Pending-duplicate table and its resolution workflow.

A colliding submission that the suppression policy does not drop is held
here until a human chooses to record or ignore it. Pending state lives only
as long as the process.
"""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

import structlog

from ledger.core.errors import InvalidPayload
from ledger.dedup.config import DedupConfig
from ledger.dedup.models import (
    DuplicateStatus,
    PendingDuplicate,
    ResolutionAction,
    ResolutionResult,
)
from ledger.normalization.models import AnalyticsMetadata, NormalizedTransaction

if TYPE_CHECKING:
    from ledger.storage.store import TransactionStore

logger = structlog.get_logger()

DuplicateHandler = Callable[[PendingDuplicate], Union[Awaitable[Any], Any]]


class DuplicateResolver:
    """State machine for possible duplicates awaiting a human decision."""

    def __init__(self, store: TransactionStore, config: DedupConfig | None = None):
        """
        Initialize the resolver.

        Args:
            store: Store the recorded candidates are appended to
            config: Dedup configuration (subscriber cap)
        """
        self.store = store
        self.config = config or DedupConfig()
        self._pending: dict[str, PendingDuplicate] = {}
        self._handlers: list[DuplicateHandler] = []

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def on_duplicate(self, handler: DuplicateHandler) -> Callable[[], None]:
        """
        Register a handler invoked once per new pending entry.

        Returns:
            Callable that unregisters the handler (idempotent)

        Raises:
            ValueError: If the subscriber cap is reached
        """
        if len(self._handlers) >= self.config.max_duplicate_handlers:
            raise ValueError(
                f"Duplicate handler limit reached ({self.config.max_duplicate_handlers})"
            )

        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    async def notify(self, pending: PendingDuplicate) -> None:
        """Invoke every handler; failures are logged and never propagated."""
        for handler in list(self._handlers):
            try:
                result = handler(pending)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    "duplicate.handler_failed",
                    pending_id=pending.pending_id,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )

    # ------------------------------------------------------------------
    # Pending table
    # ------------------------------------------------------------------

    def register(
        self, candidate: NormalizedTransaction, existing: NormalizedTransaction
    ) -> PendingDuplicate:
        """
        Hold a colliding candidate for review.

        Must be called inside the store's critical section.
        """
        pending = PendingDuplicate(
            pending_id=candidate.id,
            candidate=candidate,
            existing=existing,
        )
        self._pending[pending.pending_id] = pending
        pending.status = DuplicateStatus.PENDING

        logger.info(
            "duplicate.pending",
            pending_id=pending.pending_id,
            existing_id=existing.id,
            amount=str(candidate.amount),
            currency=candidate.currency,
        )
        return pending

    def list_pending(self) -> list[PendingDuplicate]:
        """Return pending entries in detection order."""
        return list(self._pending.values())

    def get(self, pending_id: str) -> PendingDuplicate | None:
        return self._pending.get(pending_id)

    def __len__(self) -> int:
        return len(self._pending)

    async def resolve(
        self, pending_id: str, action: ResolutionAction | str
    ) -> ResolutionResult:
        """
        Apply a human decision to a pending duplicate.

        Unknown ids return a "not-found" result; a second resolution of the
        same id is an expected race, not an error.

        Args:
            pending_id: Id returned with the duplicate signal
            action: "record" or "ignore"

        Returns:
            ResolutionResult with status recorded / ignored / not-found

        Raises:
            InvalidPayload: If the action is not record/ignore
        """
        try:
            action = ResolutionAction(action)
        except ValueError as e:
            raise InvalidPayload(
                f"Resolution action must be 'record' or 'ignore', got {action!r}",
                field="action",
            ) from e

        async with self.store.lock:
            pending = self._pending.get(pending_id)
            if pending is None:
                logger.info("duplicate.resolve_not_found", pending_id=pending_id)
                return ResolutionResult(status="not-found", pending_id=pending_id)

            if action == ResolutionAction.IGNORE:
                del self._pending[pending_id]
                pending.status = DuplicateStatus.IGNORED
                logger.info("duplicate.ignored", pending_id=pending_id)
                return ResolutionResult(
                    status="ignored",
                    pending_id=pending_id,
                    candidate=pending.candidate,
                    existing=pending.existing,
                )

            # The entry stays pending until both rows are written; a retry
            # after a failed analytics append only re-emits analytics.
            if not self.store.is_known(pending.candidate.id):
                self.store.append(pending.candidate)
            metadata = AnalyticsMetadata.from_transaction(pending.candidate)
            self.store.append_analytics(metadata)

            del self._pending[pending_id]
            pending.status = DuplicateStatus.RECORDED
            logger.info("duplicate.recorded", pending_id=pending_id)

            return ResolutionResult(
                status="recorded",
                pending_id=pending_id,
                candidate=pending.candidate,
                existing=pending.existing,
                metadata=metadata,
            )
