"""Warehouse row shapes and table references.

Rows are built once per request, written once, and never mutated afterwards,
so every shape here is a frozen dataclass.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

# Provenance tag recorded on every row written by this service
SOURCE_TAG = "shopify_webhook"


@dataclass(frozen=True, slots=True)
class TableRef:
    """Fully-qualified BigQuery table location."""

    project: str
    dataset: str
    table: str

    @property
    def fqn(self) -> str:
        return f"{self.project}.{self.dataset}.{self.table}"

    def __str__(self) -> str:
        return self.fqn


@dataclass(frozen=True, slots=True)
class OrderRow:
    """One row of the order-level table (one per accepted webhook)."""

    order_id: str
    occurred_at: str
    shop_id: str
    total_price: float
    total_discount: float
    currency: str
    source: str = SOURCE_TAG

    def to_record(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class ProductRow:
    """One row of the product-level table (one per line item)."""

    order_id: str
    occurred_at: str
    shop_id: str
    product_id: str | None
    product_title: str | None
    variant_id: str | None
    variant_title: str | None
    quantity: int
    price: float
    total_discount: float
    vendor: str | None
    currency: str
    source: str = SOURCE_TAG

    def to_record(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class NormalizedOrder:
    """Result of normalizing one order event: the order row plus its line items."""

    order_row: OrderRow
    product_rows: tuple[ProductRow, ...] = field(default_factory=tuple)

    @property
    def order_id(self) -> str:
        return self.order_row.order_id
