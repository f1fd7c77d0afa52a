"""Warehouse client: the only code that talks to BigQuery.

The client is built once at composition time and injected into the duplicate
checker and the writer. Tests substitute any object satisfying
``WarehouseClient``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import bigquery

from order_sink.errors import WarehouseError
from order_sink.models import TableRef

logger = logging.getLogger(__name__)

# Credential refresh and transport failures surface as GoogleAuthError, not GoogleAPIError
_CLIENT_ERRORS = (GoogleAPIError, GoogleAuthError)

# Python type -> BigQuery scalar parameter type
_PARAM_TYPES: dict[type, str] = {
    bool: "BOOL",
    int: "INT64",
    float: "FLOAT64",
    str: "STRING",
}


@runtime_checkable
class WarehouseClient(Protocol):
    """Point query + append-only insert primitives."""

    def query_rows(self, sql: str, params: Mapping[str, Any]) -> list[dict[str, Any]]:
        """Run a parameterized query and return every result row."""
        ...

    def insert_rows(
        self,
        table: TableRef,
        rows: Sequence[Mapping[str, Any]],
        row_ids: Sequence[str] | None = None,
    ) -> None:
        """Append rows to ``table``. Raises WarehouseError on any failure."""
        ...


class BigQueryWarehouse:
    """``WarehouseClient`` backed by google-cloud-bigquery streaming inserts."""

    def __init__(self, client: bigquery.Client) -> None:
        self._client = client

    @classmethod
    def from_project(cls, project_id: str) -> BigQueryWarehouse:
        """Build a client using Application Default Credentials."""
        return cls(bigquery.Client(project=project_id))

    @staticmethod
    def _query_parameters(params: Mapping[str, Any]) -> list[bigquery.ScalarQueryParameter]:
        query_params = []
        for name, value in params.items():
            param_type = _PARAM_TYPES.get(type(value), "STRING")
            if param_type == "STRING" and value is not None and not isinstance(value, str):
                value = str(value)
            query_params.append(bigquery.ScalarQueryParameter(name, param_type, value))
        return query_params

    def query_rows(self, sql: str, params: Mapping[str, Any]) -> list[dict[str, Any]]:
        job_config = bigquery.QueryJobConfig(query_parameters=self._query_parameters(params))
        try:
            result = self._client.query(sql, job_config=job_config).result()
        except _CLIENT_ERRORS as e:
            raise WarehouseError(f"BigQuery query failed: {e}") from e
        return [dict(row.items()) for row in result]

    def insert_rows(
        self,
        table: TableRef,
        rows: Sequence[Mapping[str, Any]],
        row_ids: Sequence[str] | None = None,
    ) -> None:
        payload = [dict(row) for row in rows]
        kwargs: dict[str, Any] = {}
        if row_ids is not None:
            kwargs["row_ids"] = list(row_ids)
        try:
            errors = self._client.insert_rows_json(table.fqn, payload, **kwargs)
        except _CLIENT_ERRORS as e:
            raise WarehouseError(f"BigQuery insert into {table} failed: {e}") from e
        if errors:
            logger.error("BigQuery returned row insertion errors | table=%s errors=%s", table, errors)
            raise WarehouseError(f"BigQuery rejected {len(errors)} row(s) for {table}")
