"""
BigQuery sink.

Streaming inserts carry each row's deduplication token as ``insertId`` so
BigQuery can drop duplicates produced by retried batches. The client library
is blocking; every call is pushed to a worker thread.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

from google.api_core.exceptions import GoogleAPICallError, NotFound
from google.cloud import bigquery
from loguru import logger

from ..errors import SinkInsertError, map_bigquery_error
from ..models import BufferedRow, InsertOptions
from ..schema import TableSchema
from .base import SinkClient


def to_bigquery_schema(schema: TableSchema) -> list[bigquery.SchemaField]:
    return [bigquery.SchemaField(f.name, f.type, mode=f.mode) for f in schema.fields]


class BigQuerySink(SinkClient):
    name = "bigquery"

    def __init__(
        self,
        dataset: str,
        table: str,
        *,
        project_id: Optional[str] = None,
        location: Optional[str] = None,
        client: Optional[bigquery.Client] = None,
    ):
        self._client = client or bigquery.Client(project=project_id, location=location)
        self._location = location
        project = project_id or self._client.project
        self.dataset_id = f"{project}.{dataset}"
        self.table_id = f"{self.dataset_id}.{table}"

    async def _call(self, fn, *args, **kwargs):
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except GoogleAPICallError as e:
            raise map_bigquery_error(e) from e

    # ---------- namespace ----------

    async def namespace_exists(self) -> bool:
        try:
            await asyncio.to_thread(self._client.get_dataset, self.dataset_id)
            return True
        except NotFound:
            return False
        except GoogleAPICallError as e:
            raise map_bigquery_error(e) from e

    async def create_namespace(self) -> None:
        dataset = bigquery.Dataset(self.dataset_id)
        if self._location:
            dataset.location = self._location
        await self._call(self._client.create_dataset, dataset)
        logger.debug(f"Created dataset {self.dataset_id}")

    # ---------- table ----------

    async def table_exists(self) -> bool:
        try:
            await asyncio.to_thread(self._client.get_table, self.table_id)
            return True
        except NotFound:
            return False
        except GoogleAPICallError as e:
            raise map_bigquery_error(e) from e

    async def create_table(self, schema: TableSchema) -> None:
        table = bigquery.Table(self.table_id, schema=to_bigquery_schema(schema))
        if schema.time_partitioning is not None:
            table.time_partitioning = bigquery.TimePartitioning(
                type_=schema.time_partitioning.type,
                field=schema.time_partitioning.field,
            )
        await self._call(self._client.create_table, table)
        logger.debug(f"Created table {self.table_id}")

    # ---------- rows ----------

    async def insert_rows(self, rows: Sequence[BufferedRow], options: InsertOptions) -> None:
        if not rows:
            return
        errors = await self._call(
            self._client.insert_rows_json,
            self.table_id,
            [dict(r.json) for r in rows],
            row_ids=[r.insert_id for r in rows],
            skip_invalid_rows=options.skip_invalid_rows,
            ignore_unknown_values=options.ignore_unknown_values,
        )
        if errors:
            raise SinkInsertError(
                f"BigQuery rejected {len(errors)} of {len(rows)} rows for {self.table_id}",
                errors=errors,
            )

    async def aclose(self) -> None:
        await asyncio.to_thread(self._client.close)
