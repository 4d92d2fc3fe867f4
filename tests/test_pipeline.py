"""
Tests for the ingestion pipeline.

End-to-end scenarios run against a real store in a temporary directory.
"""

import asyncio
from datetime import timedelta

import pytest

from conftest import BASE_TIME, LUNCH_PAYLOAD, lunch_options, make_transaction
from ledger.core.config import Settings
from ledger.core.errors import InvalidPayload
from ledger.dedup.models import EXACT_MATCH_WITHIN_WINDOW, DuplicateStatus
from ledger.pipeline.config import LedgerConfig
from ledger.pipeline.models import IngestDuplicate, IngestLogged, IngestSuppressed
from ledger.pipeline.service import IngestPipeline, create_pipeline
from ledger.storage.atomic import append_line
from ledger.storage.csv_codec import parse_line, transaction_to_row


def data_rows(pipeline):
    """Parsed data rows of the store file."""
    lines = pipeline.store.transactions_path.read_text().splitlines()[1:]
    return [parse_line(line) for line in lines if line.strip()]


class TestIngest:
    """Test submission outcomes."""

    @pytest.mark.asyncio
    async def test_new_submission_is_logged(self, pipeline):
        result = await pipeline.ingest(LUNCH_PAYLOAD, options=lunch_options())

        assert isinstance(result, IngestLogged)
        assert result.status == "logged"
        assert result.metadata.transaction_id == result.transaction.id
        assert [row[1] for row in data_rows(pipeline)] == [result.transaction.id]
        analytics = pipeline.store.analytics_path.read_text().splitlines()
        assert len(analytics) == 2

    @pytest.mark.asyncio
    async def test_resend_within_window_is_suppressed(self, pipeline):
        first = await pipeline.ingest(LUNCH_PAYLOAD, options=lunch_options())
        second = await pipeline.ingest(
            LUNCH_PAYLOAD, options=lunch_options(BASE_TIME + timedelta(seconds=90))
        )

        assert isinstance(second, IngestSuppressed)
        assert second.reason == EXACT_MATCH_WITHIN_WINDOW
        assert second.duplicate_of.id == first.transaction.id
        assert len(data_rows(pipeline)) == 1
        assert pipeline.list_pending_duplicates() == []

    @pytest.mark.asyncio
    async def test_resend_outside_window_needs_a_decision(self, pipeline):
        first = await pipeline.ingest(LUNCH_PAYLOAD, options=lunch_options())
        second = await pipeline.ingest(
            LUNCH_PAYLOAD, options=lunch_options(BASE_TIME + timedelta(minutes=5))
        )

        assert isinstance(second, IngestDuplicate)
        assert second.duplicate_of.id == first.transaction.id
        assert second.pending_id == second.transaction.id
        assert len(data_rows(pipeline)) == 1

        pending = pipeline.list_pending_duplicates()
        assert [p.pending_id for p in pending] == [second.pending_id]
        assert pending[0].status == DuplicateStatus.PENDING

    @pytest.mark.asyncio
    async def test_different_counterparty_is_a_new_record(self, pipeline):
        await pipeline.ingest(LUNCH_PAYLOAD, options=lunch_options())
        result = await pipeline.ingest(
            LUNCH_PAYLOAD,
            options=lunch_options(BASE_TIME + timedelta(seconds=10), target_party="b@upi"),
        )
        # A different counterparty changes the key, so this is a new record.
        assert isinstance(result, IngestLogged)
        assert len(data_rows(pipeline)) == 2

    @pytest.mark.asyncio
    async def test_distinct_content_is_logged(self, pipeline):
        await pipeline.ingest(LUNCH_PAYLOAD, options=lunch_options())
        result = await pipeline.ingest(
            {"amount": 80, "direction": "expense", "description": "lunch"},
            options=lunch_options(),
        )
        assert isinstance(result, IngestLogged)

    @pytest.mark.asyncio
    async def test_invalid_payload_writes_nothing(self, pipeline):
        with pytest.raises(InvalidPayload) as exc_info:
            await pipeline.ingest({"amount": "abc", "direction": "expense"}, options=lunch_options())

        assert exc_info.value.field == "amount"
        assert data_rows(pipeline) == []
        assert pipeline.metrics.invalid == 1

    @pytest.mark.asyncio
    async def test_pipeline_defaults_apply(self, store_config):
        config = LedgerConfig(store=store_config, default_currency="USD", owner_phone="+15550100")
        pipeline = IngestPipeline(config)

        result = await pipeline.ingest({"amount": 12, "direction": "expense", "description": "book"})

        assert result.transaction.currency == "USD"
        assert result.transaction.meta.source == "mill-chat"
        assert data_rows(pipeline)[0][0] == "+15550100"

    @pytest.mark.asyncio
    async def test_concurrent_identical_submissions_write_once(self, pipeline):
        results = await asyncio.gather(
            *[
                pipeline.ingest(LUNCH_PAYLOAD, options=lunch_options(BASE_TIME + timedelta(seconds=i)))
                for i in range(5)
            ]
        )

        statuses = sorted(r.status for r in results)
        assert statuses == ["logged", "suppressed", "suppressed", "suppressed", "suppressed"]
        assert len(data_rows(pipeline)) == 1

    @pytest.mark.asyncio
    async def test_history_survives_restart(self, ledger_config):
        first = IngestPipeline(ledger_config)
        logged = await first.ingest(LUNCH_PAYLOAD, options=lunch_options())

        second = IngestPipeline(ledger_config)
        result = await second.ingest(
            LUNCH_PAYLOAD, options=lunch_options(BASE_TIME + timedelta(seconds=30))
        )

        assert isinstance(result, IngestSuppressed)
        assert result.duplicate_of.id == logged.transaction.id

    @pytest.mark.asyncio
    async def test_midnight_resend_is_suppressed_after_restart(self, ledger_config):
        taxi = {"amount": 500, "direction": "expense", "description": "taxi", "raw_text": "taxi 500 at 12am"}
        first = IngestPipeline(ledger_config)
        logged = await first.ingest(taxi, options=lunch_options())
        assert isinstance(logged, IngestLogged)

        before = await first.ingest(taxi, options=lunch_options(BASE_TIME + timedelta(seconds=20)))
        assert isinstance(before, IngestSuppressed)

        second = IngestPipeline(ledger_config)
        after = await second.ingest(taxi, options=lunch_options(BASE_TIME + timedelta(seconds=30)))

        assert isinstance(after, IngestSuppressed)
        assert after.duplicate_of.id == logged.transaction.id
        assert len(data_rows(second)) == 1


class TestDuplicateResolution:
    """Test the record/ignore flow through the pipeline."""

    @pytest.mark.asyncio
    async def test_record_then_not_found(self, pipeline):
        await pipeline.ingest(LUNCH_PAYLOAD, options=lunch_options())
        duplicate = await pipeline.ingest(
            LUNCH_PAYLOAD, options=lunch_options(BASE_TIME + timedelta(minutes=5))
        )

        recorded = await pipeline.resolve_duplicate(duplicate.pending_id, "record")
        assert recorded.status == "recorded"
        assert recorded.metadata.transaction_id == duplicate.pending_id
        assert len(data_rows(pipeline)) == 2
        assert pipeline.list_pending_duplicates() == []

        again = await pipeline.resolve_duplicate(duplicate.pending_id, "record")
        assert again.status == "not-found"
        assert len(data_rows(pipeline)) == 2

    @pytest.mark.asyncio
    async def test_record_retry_after_analytics_failure_writes_once(self, pipeline, monkeypatch):
        """A failed analytics append keeps the entry pending without duplicating the row."""
        await pipeline.ingest(LUNCH_PAYLOAD, options=lunch_options())
        duplicate = await pipeline.ingest(
            LUNCH_PAYLOAD, options=lunch_options(BASE_TIME + timedelta(minutes=5))
        )

        original = pipeline.store.append_analytics
        calls = []

        def flaky(metadata):
            calls.append(metadata.transaction_id)
            if len(calls) == 1:
                raise OSError("disk full")
            original(metadata)

        monkeypatch.setattr(pipeline.store, "append_analytics", flaky)

        with pytest.raises(OSError):
            await pipeline.resolve_duplicate(duplicate.pending_id, "record")
        assert [p.pending_id for p in pipeline.list_pending_duplicates()] == [duplicate.pending_id]

        retried = await pipeline.resolve_duplicate(duplicate.pending_id, "record")

        assert retried.status == "recorded"
        ids = [row[1] for row in data_rows(pipeline)]
        assert ids.count(duplicate.pending_id) == 1
        assert len(ids) == 2
        assert pipeline.list_pending_duplicates() == []

    @pytest.mark.asyncio
    async def test_ignore(self, pipeline):
        await pipeline.ingest(LUNCH_PAYLOAD, options=lunch_options())
        duplicate = await pipeline.ingest(
            LUNCH_PAYLOAD, options=lunch_options(BASE_TIME + timedelta(minutes=5))
        )

        result = await pipeline.resolve_duplicate(duplicate.pending_id, "ignore")

        assert result.status == "ignored"
        assert len(data_rows(pipeline)) == 1
        assert pipeline.metrics.ignored == 1

    @pytest.mark.asyncio
    async def test_recorded_duplicate_becomes_index_entry(self, pipeline):
        await pipeline.ingest(LUNCH_PAYLOAD, options=lunch_options())
        duplicate = await pipeline.ingest(
            LUNCH_PAYLOAD, options=lunch_options(BASE_TIME + timedelta(minutes=5))
        )
        await pipeline.resolve_duplicate(duplicate.pending_id, "record")

        # 60 s after the recorded copy: suppressed against it, not the original.
        result = await pipeline.ingest(
            LUNCH_PAYLOAD, options=lunch_options(BASE_TIME + timedelta(minutes=6))
        )
        assert isinstance(result, IngestSuppressed)
        assert result.duplicate_of.id == duplicate.pending_id

    @pytest.mark.asyncio
    async def test_handlers_notified_and_failures_contained(self, pipeline):
        seen = []

        def broken(pending):
            raise RuntimeError("notifier down")

        pipeline.on_duplicate(broken)
        pipeline.on_duplicate(lambda pending: seen.append(pending.pending_id))

        await pipeline.ingest(LUNCH_PAYLOAD, options=lunch_options())
        duplicate = await pipeline.ingest(
            LUNCH_PAYLOAD, options=lunch_options(BASE_TIME + timedelta(minutes=5))
        )

        assert isinstance(duplicate, IngestDuplicate)
        assert seen == [duplicate.pending_id]

    @pytest.mark.asyncio
    async def test_handler_can_resolve_its_own_entry(self, pipeline):
        """Handlers run outside the store lock, so resolving from one cannot deadlock."""
        results = []

        async def auto_ignore(pending):
            results.append(await pipeline.resolve_duplicate(pending.pending_id, "ignore"))

        pipeline.on_duplicate(auto_ignore)

        await pipeline.ingest(LUNCH_PAYLOAD, options=lunch_options())
        await asyncio.wait_for(
            pipeline.ingest(LUNCH_PAYLOAD, options=lunch_options(BASE_TIME + timedelta(minutes=5))),
            timeout=2,
        )

        assert [r.status for r in results] == ["ignored"]
        assert pipeline.list_pending_duplicates() == []


class TestMetricsAndMonitor:
    """Test counters and the change monitor wiring."""

    @pytest.mark.asyncio
    async def test_metrics(self, pipeline):
        await pipeline.ingest(LUNCH_PAYLOAD, options=lunch_options())
        await pipeline.ingest(LUNCH_PAYLOAD, options=lunch_options(BASE_TIME + timedelta(seconds=30)))
        duplicate = await pipeline.ingest(
            LUNCH_PAYLOAD, options=lunch_options(BASE_TIME + timedelta(minutes=5))
        )
        with pytest.raises(InvalidPayload):
            await pipeline.ingest({"amount": 5, "direction": "sideways"})

        metrics = pipeline.get_metrics()
        assert metrics["logged"] == 1
        assert metrics["suppressed"] == 1
        assert metrics["escalated"] == 1
        assert metrics["invalid"] == 1
        assert metrics["total_submissions"] == 4
        assert metrics["pending_duplicates"] == 1
        assert metrics["known_records"] == 1

        await pipeline.resolve_duplicate(duplicate.pending_id, "record")
        await pipeline.resolve_duplicate(duplicate.pending_id, "record")
        metrics = pipeline.get_metrics()
        assert metrics["recorded"] == 1
        assert metrics["not_found"] == 1

    @pytest.mark.asyncio
    async def test_start_csv_monitor_reports_external_rows(self, pipeline):
        batches = []
        stop = await pipeline.start_csv_monitor(batches.append)

        try:
            await pipeline.ingest(LUNCH_PAYLOAD, options=lunch_options())
            external = make_transaction(
                {"amount": 999, "direction": "income", "description": "refund"}
            )
            append_line(pipeline.store.transactions_path, transaction_to_row(external))

            for _ in range(200):
                if batches:
                    break
                await asyncio.sleep(0.01)
        finally:
            await stop()
            await pipeline.stop_monitors()

        assert [r.id for batch in batches for r in batch] == [external.id]
        assert pipeline.metrics.external_records == 1
        assert pipeline.get_metrics()["monitor_scans"] >= 2

    @pytest.mark.asyncio
    async def test_monitor_tolerates_handwritten_rows(self, pipeline):
        batches = []
        stop = await pipeline.start_csv_monitor(batches.append)
        try:
            append_line(
                pipeline.store.transactions_path,
                '"+91","hand-1","2025-10-13T12:00:00","2025-10-13","12:00:00","10","INR","expense","","tea","","true",""',
            )
            append_line(pipeline.store.transactions_path, '"broken row"')
            for _ in range(200):
                if batches:
                    break
                await asyncio.sleep(0.01)
        finally:
            await stop()

        assert [r.id for batch in batches for r in batch] == ["hand-1"]


def test_create_pipeline_from_settings(tmp_path):
    settings = Settings(DATA_DIR=str(tmp_path), DEFAULT_CURRENCY="EUR", DEDUP_WINDOW_SECONDS=30)
    pipeline = create_pipeline(settings)

    assert pipeline.store.transactions_path.parent == tmp_path
    assert pipeline.config.default_currency == "EUR"
    assert pipeline.config.dedup.window_seconds == 30
