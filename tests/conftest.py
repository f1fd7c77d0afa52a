"""Shared fixtures for the order sink test suite."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from collections.abc import Mapping, Sequence
from typing import Any

import pytest

from order_sink.config import Settings
from order_sink.errors import WarehouseError
from order_sink.models import TableRef

SECRET = "shopify-test-secret"


def sign(body: bytes, secret: str = SECRET) -> str:
    """Compute a valid Shopify signature header for ``body``."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def encode(payload: Any) -> bytes:
    return json.dumps(payload).encode()


class FakeWarehouse:
    """In-memory WarehouseClient with per-table failure injection."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.insert_calls: list[tuple[str, int]] = []
        self.queries: list[tuple[str, dict[str, Any]]] = []
        self.failures_remaining: dict[str, int] = {}
        self.query_error: Exception | None = None

    def fail_next(self, table: TableRef, times: int) -> None:
        self.failures_remaining[table.fqn] = times

    def rows(self, table: TableRef) -> list[dict[str, Any]]:
        return self.tables.get(table.fqn, [])

    def query_rows(self, sql: str, params: Mapping[str, Any]) -> list[dict[str, Any]]:
        self.queries.append((sql, dict(params)))
        if self.query_error is not None:
            raise self.query_error
        order_id = params.get("order_id")
        for fqn, rows in self.tables.items():
            if fqn in sql and any(row.get("order_id") == order_id for row in rows):
                return [{"f0_": 1}]
        return []

    def insert_rows(
        self,
        table: TableRef,
        rows: Sequence[Mapping[str, Any]],
        row_ids: Sequence[str] | None = None,
    ) -> None:
        self.insert_calls.append((table.fqn, len(rows)))
        remaining = self.failures_remaining.get(table.fqn, 0)
        if remaining > 0:
            self.failures_remaining[table.fqn] = remaining - 1
            raise WarehouseError(f"simulated insert failure for {table.fqn}")
        self.tables.setdefault(table.fqn, []).extend(dict(row) for row in rows)


@pytest.fixture()
def signer():
    """Return a function that signs a body with the test secret."""
    return sign


@pytest.fixture()
def warehouse() -> FakeWarehouse:
    return FakeWarehouse()


@pytest.fixture()
def warehouse_factory():
    """Build fresh fake warehouses (for hypothesis tests that need one per example)."""
    return FakeWarehouse


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        project_id="test-project",
        dataset_id="retail_mvp",
        shopify_webhook_secret=SECRET,
        _env_file=None,
    )


@pytest.fixture()
def insecure_settings() -> Settings:
    return Settings(
        project_id="test-project",
        dataset_id="retail_mvp",
        shopify_webhook_secret=None,
        _env_file=None,
    )


@pytest.fixture()
def sample_order() -> dict[str, Any]:
    """The canonical order from the ingestion contract."""
    return {
        "id": 123,
        "created_at": "2024-01-01T00:00:00Z",
        "currency": "USD",
        "total_price": "50.00",
        "line_items": [
            {"product_id": 9, "title": "Widget", "quantity": 2, "price": "25.00"},
        ],
    }
