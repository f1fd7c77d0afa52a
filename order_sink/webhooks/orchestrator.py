"""Request orchestrator: the fixed per-request pipeline.

    RECEIVED -> VERIFIED -> VALIDATED -> CHECKED -> WRITTEN -> RESPONDED

Every state has a failure exit straight to RESPONDED:

- verify fails          -> 401 "Invalid signature"
- normalize fails       -> 400 "Invalid payload"
- order already stored  -> 200 "Already processed" (no writes)
- write fails           -> 500 "Internal error" (sender redelivers)
- anything unexpected   -> 500 "Internal error"

Steps run strictly in sequence; the duplicate check is only a gate because
no write starts before it returns. Responses never carry error details.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone

from order_sink.errors import TransientWriteError, ValidationError
from order_sink.models import NormalizedOrder, TableRef
from order_sink.warehouse.dedup import DuplicateChecker
from order_sink.warehouse.writer import DurableWriter
from order_sink.webhooks.normalizer import decode_body, normalize
from order_sink.webhooks.verification import verify_shopify

logger = logging.getLogger(__name__)

# Max characters of an offending payload written to the log
LOG_SNIPPET_LIMIT = 200


class PipelineState(str, enum.Enum):
    RECEIVED = "received"
    VERIFIED = "verified"
    VALIDATED = "validated"
    CHECKED = "checked"
    WRITTEN = "written"
    RESPONDED = "responded"


@dataclass(frozen=True)
class WebhookResult:
    """Outcome of one request.

    ``state`` is the last pipeline state reached before responding.
    """

    status_code: int
    body: str
    state: PipelineState
    order_id: str | None = None


def _snippet(raw_body: bytes, limit: int = LOG_SNIPPET_LIMIT) -> str:
    text = raw_body[: limit * 4].decode("utf-8", errors="replace")
    if len(text) > limit or len(raw_body) > limit * 4:
        return text[:limit] + "..."
    return text


def _audit(state: PipelineState, status: str, order_id: str | None, **extra: object) -> None:
    details = " ".join(f"{key}={value}" for key, value in extra.items() if value is not None)
    logger.info(
        "WEBHOOK_AUDIT state=%s status=%s order_id=%s %s",
        state.value,
        status,
        order_id or "-",
        details,
    )


class WebhookOrchestrator:
    """Sequences verify -> normalize -> duplicate check -> write for one request."""

    def __init__(
        self,
        secret: str | None,
        checker: DuplicateChecker,
        writer: DurableWriter,
        orders_table: TableRef,
        products_table: TableRef,
    ) -> None:
        self._secret = secret
        self._checker = checker
        self._writer = writer
        self._orders_table = orders_table
        self._products_table = products_table

    def handle(
        self,
        raw_body: bytes,
        signature: str | None,
        topic: str | None = None,
        webhook_id: str | None = None,
    ) -> WebhookResult:
        """Run the full pipeline over the raw request bytes and map the outcome."""
        start = time.monotonic()
        state = PipelineState.RECEIVED
        order_id: str | None = None
        try:
            # 1. Verify signature over the exact bytes received
            if not verify_shopify(raw_body, signature, self._secret):
                logger.warning("Invalid Shopify HMAC, rejecting webhook | webhook_id=%s", webhook_id)
                _audit(state, "signature_failed", None, topic=topic, webhook_id=webhook_id)
                return WebhookResult(401, "Invalid signature", state)
            state = PipelineState.VERIFIED

            # 2. Parse and normalize
            try:
                normalized = normalize(decode_body(raw_body), received_at=datetime.now(timezone.utc))
            except ValidationError as e:
                logger.warning("Invalid payload: %s | snippet=%r", e.message, _snippet(raw_body))
                _audit(state, "invalid_payload", None, topic=topic, webhook_id=webhook_id)
                return WebhookResult(400, "Invalid payload", state)
            state = PipelineState.VALIDATED
            order_id = normalized.order_id
            logger.info(
                "Received order %s with %d line items | topic=%s webhook_id=%s",
                order_id,
                len(normalized.product_rows),
                topic,
                webhook_id,
            )

            # 3. Idempotency gate
            if self._checker.exists(order_id):
                logger.info("Order %s already processed earlier, skipping inserts", order_id)
                _audit(state, "duplicate", order_id, topic=topic, webhook_id=webhook_id)
                return WebhookResult(200, "Already processed", state, order_id)
            state = PipelineState.CHECKED

            # 4. Write order row, then product rows
            self._write(normalized)
            state = PipelineState.WRITTEN

        except TransientWriteError as e:
            logger.error(
                "Giving up on order %s: %s (%d attempts)", order_id, e.message, e.attempts
            )
            _audit(state, "write_failed", order_id, topic=topic, webhook_id=webhook_id)
            return WebhookResult(500, "Internal error", state, order_id)
        except Exception:
            logger.exception("Unhandled error while processing webhook | order_id=%s", order_id)
            _audit(state, "error", order_id, topic=topic, webhook_id=webhook_id)
            return WebhookResult(500, "Internal error", state, order_id)

        elapsed_ms = (time.monotonic() - start) * 1000
        logger.info(
            "Order %s stored successfully: 1 order row, %d product rows in %.1f ms",
            order_id,
            len(normalized.product_rows),
            elapsed_ms,
        )
        _audit(state, "stored", order_id, topic=topic, webhook_id=webhook_id)
        return WebhookResult(200, "OK", state, order_id)

    def _write(self, normalized: NormalizedOrder) -> None:
        order_id = normalized.order_id
        self._writer.write(
            self._orders_table,
            [normalized.order_row.to_record()],
            row_ids=[f"{order_id}:order"],
        )
        self._writer.write(
            self._products_table,
            [row.to_record() for row in normalized.product_rows],
            row_ids=[f"{order_id}:item:{index}" for index in range(len(normalized.product_rows))],
        )
