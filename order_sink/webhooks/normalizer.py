"""Order payload normalizer: untrusted webhook JSON -> warehouse rows.

Two steps, one boundary:

1. ``parse_order_event`` validates the structure into a typed ``OrderEvent``.
   Every structural problem (not an object, missing id, missing or
   non-list line_items, non-object line item) becomes a ``ValidationError``.
2. ``normalize`` reshapes the event into one ``OrderRow`` plus one
   ``ProductRow`` per line item, applying the coercion and defaulting rules.

Canonical choices:
- Monetary values are floats everywhere (BigQuery FLOAT64). Absent, empty and
  non-numeric values become 0.0; coercion never fails normalization.
- The shop id comes from ``SHOP_ID_STRATEGIES`` in order, falling back to
  ``UNKNOWN_SHOP_ID``.
- One occurrence timestamp per request, shared by every row.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError

from order_sink.errors import ValidationError
from order_sink.models import NormalizedOrder, OrderRow, ProductRow

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"
UNKNOWN_SHOP_ID = "UNKNOWN"

# BigQuery INT64 range
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


# ── Typed input ───────────────────────────────────────────────────────────


def _is_absent(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _identifier_to_str(value: Any) -> str:
    """Render a sender identifier (number or string) as a stable string key.

    Integral floats drop their ``.0`` so ``123``, ``123.0`` and ``"123"`` all
    map to the same stored order id.
    """
    if isinstance(value, bool):
        raise ValueError("identifier must be a string or number, not a boolean")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError("identifier must be finite")
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (int, Decimal)):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    raise ValueError(f"identifier must be a string or number, not {type(value).__name__}")


class LineItem(BaseModel):
    """One purchased product/variant entry. Every field is optional."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    product_id: Any = None
    title: Any = None
    variant_id: Any = None
    variant_title: Any = None
    quantity: Any = None
    price: Any = None
    total_discount: Any = None
    vendor: Any = None


class OrderEvent(BaseModel):
    """Structurally validated order webhook payload."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    created_at: Any = None
    currency: Any = None
    location_id: Any = None
    source_name: Any = None
    total_price: Any = None
    total_discounts: Any = None
    line_items: list[LineItem]

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> str:
        if _is_absent(value):
            raise ValueError("order id is required")
        return _identifier_to_str(value)


def decode_body(raw_body: bytes) -> Any:
    """Decode a raw request body as JSON, classifying failures as ValidationError."""
    try:
        return json.loads(raw_body)
    except ValueError as e:
        raise ValidationError(f"body is not valid JSON: {type(e).__name__}") from e


def parse_order_event(parsed_body: Any) -> OrderEvent:
    """Validate a decoded JSON body into an ``OrderEvent``."""
    if isinstance(parsed_body, OrderEvent):
        return parsed_body
    if not isinstance(parsed_body, Mapping):
        raise ValidationError(f"body must be a JSON object, got {type(parsed_body).__name__}")
    if "line_items" not in parsed_body or parsed_body["line_items"] is None:
        raise ValidationError("line_items is required")
    if not isinstance(parsed_body["line_items"], list):
        raise ValidationError("line_items must be a list")

    try:
        return OrderEvent.model_validate(dict(parsed_body))
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ())) or "body"
        raise ValidationError(f"{location}: {first.get('msg', 'invalid')}") from e


# ── Coercion ──────────────────────────────────────────────────────────────


def coerce_amount(value: Any) -> float:
    """Coerce a monetary value to float.

    None, empty and whitespace-only values are 0.0. Numbers and numeric-looking
    strings parse as floats. Anything else (including NaN/inf) is 0.0 and is
    logged, so a bad field never rejects the whole order.
    """
    if _is_absent(value):
        return 0.0
    if isinstance(value, bool):
        logger.warning("Non-numeric amount coerced to 0 | raw_value=%r", value)
        return 0.0
    try:
        amount = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError, OverflowError):
        logger.warning("Non-numeric amount coerced to 0 | raw_value=%r", value)
        return 0.0
    if not math.isfinite(amount):
        logger.warning("Non-finite amount coerced to 0 | raw_value=%r", value)
        return 0.0
    return amount


def coerce_quantity(value: Any) -> int:
    """Coerce a line item quantity to int, defaulting to 0."""
    if _is_absent(value) or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        quantity = value
    else:
        try:
            parsed = float(value.strip() if isinstance(value, str) else value)
        except (TypeError, ValueError, OverflowError):
            logger.warning("Non-numeric quantity coerced to 0 | raw_value=%r", value)
            return 0
        if not math.isfinite(parsed) or not parsed.is_integer():
            logger.warning("Non-integral quantity coerced to 0 | raw_value=%r", value)
            return 0
        quantity = int(parsed)
    if not INT64_MIN <= quantity <= INT64_MAX:
        logger.warning("Out-of-range quantity coerced to 0 | raw_value=%r", value)
        return 0
    return quantity


def _optional_id(value: Any) -> str | None:
    if _is_absent(value):
        return None
    try:
        return _identifier_to_str(value)
    except ValueError:
        logger.warning("Unusable identifier dropped | raw_value=%r", value)
        return None


def _optional_text(value: Any) -> str | None:
    """Pass text through; absent stays None and an empty string stays empty."""
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def resolve_occurred_at(created_at: Any, received_at: datetime) -> str:
    """Return the sender's creation time if parseable, else the receipt time (UTC ISO-8601)."""
    if isinstance(created_at, str) and created_at.strip():
        try:
            parsed = datetime.fromisoformat(created_at.strip().replace("Z", "+00:00"))
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc).isoformat()
        except (ValueError, OverflowError):
            logger.info("Unusable created_at, using receipt time | created_at=%r", created_at)
    if received_at.tzinfo is None:
        received_at = received_at.replace(tzinfo=timezone.utc)
    return received_at.astimezone(timezone.utc).isoformat()


# ── Shop id ───────────────────────────────────────────────────────────────

# Evaluated in order; the first non-absent value wins.
SHOP_ID_STRATEGIES: tuple[tuple[str, Callable[[OrderEvent], Any]], ...] = (
    ("location_id", lambda event: event.location_id),
    ("source_name", lambda event: event.source_name),
)


def resolve_shop_id(event: OrderEvent) -> str:
    for name, extract in SHOP_ID_STRATEGIES:
        candidate = _optional_id(extract(event))
        if candidate:
            logger.debug("Shop id resolved | strategy=%s shop_id=%s", name, candidate)
            return candidate
    return UNKNOWN_SHOP_ID


# ── Normalization ─────────────────────────────────────────────────────────


def normalize(parsed_body: Any, received_at: datetime | None = None) -> NormalizedOrder:
    """Reshape an order payload into one order row and its product rows.

    Args:
        parsed_body: Decoded JSON body (or an already-parsed ``OrderEvent``)
        received_at: Receipt time, used when ``created_at`` is absent/unparseable

    Returns:
        NormalizedOrder with exactly one OrderRow and one ProductRow per line item

    Raises:
        ValidationError: when the payload is structurally malformed
    """
    event = parse_order_event(parsed_body)
    received_at = received_at or datetime.now(timezone.utc)

    occurred_at = resolve_occurred_at(event.created_at, received_at)
    shop_id = resolve_shop_id(event)
    currency = DEFAULT_CURRENCY if _is_absent(event.currency) else str(event.currency).strip()

    order_row = OrderRow(
        order_id=event.id,
        occurred_at=occurred_at,
        shop_id=shop_id,
        total_price=coerce_amount(event.total_price),
        total_discount=coerce_amount(event.total_discounts),
        currency=currency,
    )

    product_rows = tuple(
        ProductRow(
            order_id=event.id,
            occurred_at=occurred_at,
            shop_id=shop_id,
            product_id=_optional_id(item.product_id),
            product_title=_optional_text(item.title),
            variant_id=_optional_id(item.variant_id),
            variant_title=_optional_text(item.variant_title),
            quantity=coerce_quantity(item.quantity),
            price=coerce_amount(item.price),
            total_discount=coerce_amount(item.total_discount),
            vendor=_optional_text(item.vendor),
            currency=currency,
        )
        for item in event.line_items
    )

    return NormalizedOrder(order_row=order_row, product_rows=product_rows)
