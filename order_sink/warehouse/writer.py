"""Durable writer: table-scoped inserts with a fixed retry bound.

Every attempt sends the identical row set (no partial-row splitting). Each
failed attempt is logged with attempt number, table and error. Only after the
last attempt fails does the caller see a TransientWriteError.

Retries are immediate by default; a non-zero ``base_delay`` switches on
exponential backoff between attempts.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from order_sink.errors import TransientWriteError, WarehouseError
from order_sink.models import TableRef
from order_sink.warehouse.client import WarehouseClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3

# Failures worth another attempt: classified warehouse errors and I/O failures
RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (WarehouseError, OSError)


class DurableWriter:
    """Insert rows into one table per call, retrying up to ``max_attempts``."""

    def __init__(
        self,
        warehouse: WarehouseClient,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = 0.0,
        max_delay: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._warehouse = warehouse
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep

    def _delay_for(self, attempt: int) -> float:
        """Backoff before the attempt following ``attempt`` (1-based): base * 2^(attempt-1)."""
        if self.base_delay <= 0:
            return 0.0
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    def write(
        self,
        table: TableRef,
        rows: Sequence[Mapping[str, Any]],
        row_ids: Sequence[str] | None = None,
    ) -> None:
        """Insert ``rows`` into ``table``.

        An empty row set is a no-op. Raises TransientWriteError once every
        attempt has failed.
        """
        if not rows:
            logger.debug("No rows to insert into %s, skipping", table)
            return

        last_error: BaseException | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                self._warehouse.insert_rows(table, rows, row_ids=row_ids)
            except RETRYABLE_ERRORS as e:
                last_error = e
                logger.error(
                    "Attempt %d/%d failed inserting %d row(s) into %s: %s",
                    attempt,
                    self.max_attempts,
                    len(rows),
                    table,
                    e,
                )
                if attempt < self.max_attempts:
                    delay = self._delay_for(attempt)
                    if delay > 0:
                        self._sleep(delay)
                continue

            logger.info("Inserted %d row(s) into %s (attempt %d)", len(rows), table, attempt)
            return

        raise TransientWriteError(
            f"Insert into {table} failed after {self.max_attempts} attempts",
            table=table.fqn,
            attempts=self.max_attempts,
        ) from last_error
