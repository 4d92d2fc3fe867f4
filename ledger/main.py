from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI

from ledger import __version__
from ledger.core.config import Settings, get_settings
from ledger.core.logging import configure_logging, request_id_middleware
from ledger.normalization.models import NormalizedTransaction
from ledger.pipeline.router import router as ledger_router
from ledger.pipeline.service import IngestPipeline

logger = logging.getLogger(__name__)


def log_external_records(records: list[NormalizedTransaction]) -> None:
    """Raise records written outside the pipeline as alerts."""
    alert_logger = structlog.get_logger("ledger.alerts")
    for record in records:
        alert_logger.warning(
            "store.external_record",
            transaction_id=record.id,
            direction=record.direction,
            amount=str(record.amount),
            currency=record.currency,
            event_date=record.event_date.isoformat(),
            description=record.description,
        )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI app; the pipeline is created in the lifespan."""
    settings = settings or get_settings()
    configure_logging(settings.ENV, settings.DEBUG)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan events."""
        # Startup
        logger.info("Starting ledger ingestion service (env: %s)", settings.ENV)
        pipeline = IngestPipeline.from_settings(settings)
        app.state.pipeline = pipeline
        logger.info("Transaction store: %s", pipeline.store.transactions_path)

        stop_monitor = None
        if pipeline.config.monitor_enabled:
            stop_monitor = await pipeline.start_csv_monitor(log_external_records)
            logger.info("Change monitor started")
        else:
            logger.warning("Change monitor disabled")

        yield

        # Shutdown
        if stop_monitor is not None:
            await stop_monitor()
            logger.info("Change monitor stopped")
        logger.info("Ledger ingestion service shut down")

    app = FastAPI(title="Ledger Ingestion Service", version=__version__, lifespan=lifespan)
    app.middleware("http")(request_id_middleware)
    app.include_router(ledger_router)

    @app.get("/healthz")
    def healthz():
        logger.debug("Healthz endpoint called (env: %s)", settings.ENV)
        return {"status": "healthy", "env": settings.ENV}

    return app


app = create_app()
