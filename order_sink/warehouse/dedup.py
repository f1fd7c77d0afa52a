"""Duplicate check — has this order id already been written?

Contract:
- Runs before any write in the request; a hit short-circuits the pipeline
- Point lookup on the orders table, LIMIT 1 (only emptiness matters)
- Query failures propagate; an unreachable warehouse is never read as "new"
- NOT atomic with the subsequent inserts. Two concurrent deliveries of the
  same order can both see "not found" and both write. Closing that window
  needs a warehouse-side uniqueness constraint or a per-key lock.
"""

from __future__ import annotations

import logging

from order_sink.models import TableRef
from order_sink.warehouse.client import WarehouseClient

logger = logging.getLogger(__name__)

_EXISTS_SQL = "SELECT 1 FROM `{table}` WHERE order_id = @order_id LIMIT 1"


class DuplicateChecker:
    """Existence check against the order-level table."""

    def __init__(self, warehouse: WarehouseClient, orders_table: TableRef) -> None:
        self._warehouse = warehouse
        self._orders_table = orders_table

    @property
    def sql(self) -> str:
        return _EXISTS_SQL.format(table=self._orders_table.fqn)

    def exists(self, order_id: str) -> bool:
        rows = self._warehouse.query_rows(self.sql, {"order_id": order_id})
        found = len(rows) > 0
        logger.debug("Duplicate check | order_id=%s found=%s", order_id, found)
        return found
