"""Webhook HTTP handlers — FastAPI app factory and routes.

Routes:
- GET  /   health probe, static 200
- POST /   Shopify order webhook

The POST handler reads the raw body bytes (needed for HMAC verification)
before anything parses them, then runs the synchronous orchestrator in the
threadpool so blocking BigQuery calls never stall the event loop.

Security contract:
- Never return error details to the webhook caller (plain status phrase only)
- Return 401 only for signature failures
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from order_sink import __version__
from order_sink.config import Settings
from order_sink.warehouse.client import BigQueryWarehouse, WarehouseClient
from order_sink.warehouse.dedup import DuplicateChecker
from order_sink.warehouse.writer import DurableWriter
from order_sink.webhooks.orchestrator import WebhookOrchestrator
from order_sink.webhooks.verification import SIGNATURE_HEADER

logger = logging.getLogger(__name__)

TOPIC_HEADER = "x-shopify-topic"
WEBHOOK_ID_HEADER = "x-shopify-webhook-id"


def build_orchestrator(settings: Settings, warehouse: WarehouseClient) -> WebhookOrchestrator:
    """Compose the pipeline around an explicitly constructed warehouse client."""
    if not settings.shopify_webhook_secret:
        logger.warning(
            "SHOPIFY_WEBHOOK_SECRET is not set: webhook signatures will NOT be verified (DEV ONLY)"
        )
    writer = DurableWriter(
        warehouse,
        max_attempts=settings.write_max_attempts,
        base_delay=settings.write_retry_base_delay,
    )
    return WebhookOrchestrator(
        secret=settings.shopify_webhook_secret,
        checker=DuplicateChecker(warehouse, settings.orders_table),
        writer=writer,
        orders_table=settings.orders_table,
        products_table=settings.products_table,
    )


def register_webhook_routes(app: FastAPI, orchestrator: WebhookOrchestrator) -> None:
    """Register the health probe and the webhook endpoint on ``app``."""

    @app.get("/", response_class=PlainTextResponse)
    async def health():
        """Liveness probe."""
        return PlainTextResponse("ok", status_code=200)

    @app.post("/", response_class=PlainTextResponse)
    async def shopify_order_webhook(request: Request):
        """Receive a Shopify order webhook (signature-verified)."""
        body = await request.body()
        headers = {k.lower(): v for k, v in request.headers.items()}

        result = await run_in_threadpool(
            orchestrator.handle,
            body,
            headers.get(SIGNATURE_HEADER),
            headers.get(TOPIC_HEADER),
            headers.get(WEBHOOK_ID_HEADER),
        )
        return PlainTextResponse(result.body, status_code=result.status_code)

    logger.info("Webhook routes registered: GET /, POST /")


def create_app(settings: Settings, warehouse: WarehouseClient | None = None) -> FastAPI:
    """Build the FastAPI app.

    Args:
        settings: Loaded configuration
        warehouse: Warehouse client; defaults to a BigQuery client for
            ``settings.project_id``
    """
    if warehouse is None:
        warehouse = BigQueryWarehouse.from_project(settings.project_id)

    app = FastAPI(title="shopify-order-sink", version=__version__)
    orchestrator = build_orchestrator(settings, warehouse)
    app.state.orchestrator = orchestrator
    register_webhook_routes(app, orchestrator)
    return app
