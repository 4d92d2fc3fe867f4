from __future__ import annotations

import logging
import sys
import time
import uuid
from typing import Any

import structlog
from fastapi import Request

# Modules whose INFO chatter drowns out ledger events.
QUIET_LOGGERS = ("uvicorn.access", "httpx")


def configure_logging(env: str = "development", debug: bool = False) -> None:
    """Configure structlog over stdlib logging.

    Development gets the colored console renderer; production emits one JSON
    object per line so store alerts can be shipped as-is. Every event carries
    its logger name, so ``ledger.alerts`` records are easy to route.
    """
    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    renderer: Any
    if env == "production":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[*processors, renderer],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


REQUEST_ID_HEADER = "x-request-id"


async def request_id_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Bind a request id to every ledger event logged while serving the request.

    The id is taken from the caller's ``x-request-id`` header when present so
    chat and SMS front-ends can correlate their own logs with ledger writes.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    structlog.contextvars.bind_contextvars(
        request_id=request_id, method=request.method, path=request.url.path
    )

    access_logger = structlog.get_logger("ledger.http")
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        access_logger.exception(
            "http.request_failed",
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        raise
    finally:
        structlog.contextvars.unbind_contextvars("request_id", "method", "path")

    log = access_logger.warning if response.status_code >= 500 else access_logger.info
    log(
        "http.request",
        request_id=request_id,
        status=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 2),
    )
    response.headers[REQUEST_ID_HEADER] = request_id
    return response
