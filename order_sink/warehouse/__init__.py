"""BigQuery-facing side of the sink: client, duplicate check and durable writer."""

from order_sink.warehouse.client import BigQueryWarehouse, WarehouseClient
from order_sink.warehouse.dedup import DuplicateChecker
from order_sink.warehouse.writer import DurableWriter

__all__ = ["BigQueryWarehouse", "DuplicateChecker", "DurableWriter", "WarehouseClient"]
