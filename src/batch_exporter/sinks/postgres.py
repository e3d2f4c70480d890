from __future__ import annotations

from typing import Optional, Sequence

import psycopg
from loguru import logger
from psycopg import sql as psql
from psycopg_pool import AsyncConnectionPool

from ..errors import map_db_error
from ..models import BufferedRow, InsertOptions
from ..schema import TableSchema
from .base import SinkClient

# schema field type -> postgres column type
PG_TYPES: dict[str, str] = {
    "INTEGER": "bigint",
    "FLOAT": "double precision",
    "STRING": "text",
    "BOOLEAN": "boolean",
    "TIMESTAMP": "timestamptz",
}

INGESTED_AT = "_ingested_at"

NAMESPACE_EXISTS = "SELECT 1 FROM information_schema.schemata WHERE schema_name = %s"
TABLE_EXISTS = (
    "SELECT 1 FROM information_schema.tables WHERE table_schema = %s AND table_name = %s"
)
TABLE_COLUMNS = (
    "SELECT column_name FROM information_schema.columns WHERE table_schema = %s AND table_name = %s"
)


def create_table_statement(namespace: str, table: str, schema: TableSchema) -> psql.Composed:
    """CREATE TABLE with an ``insert_id`` primary key for sink-side dedup."""
    cols = [psql.SQL("insert_id text PRIMARY KEY")]
    for f in schema.fields:
        try:
            pg_type = PG_TYPES[f.type.upper()]
        except KeyError:
            raise ValueError(f"unsupported field type {f.type!r} for column {f.name!r}") from None
        null = psql.SQL(" NOT NULL") if f.mode.upper() == "REQUIRED" else psql.SQL("")
        cols.append(
            psql.SQL("{} {}{}").format(psql.Identifier(f.name), psql.SQL(pg_type), null)
        )
    cols.append(psql.SQL("{} timestamptz NOT NULL DEFAULT now()").format(psql.Identifier(INGESTED_AT)))
    return psql.SQL("CREATE TABLE {} ({})").format(
        psql.Identifier(namespace, table), psql.SQL(", ").join(cols)
    )


def partition_index_statement(namespace: str, table: str, schema: TableSchema) -> psql.Composed:
    """Daily partitioning is approximated by an index on the partition column."""
    col = (schema.time_partitioning.field if schema.time_partitioning else None) or INGESTED_AT
    return psql.SQL("CREATE INDEX {} ON {} ({})").format(
        psql.Identifier(f"{table}_{col.lstrip('_')}_idx"),
        psql.Identifier(namespace, table),
        psql.Identifier(col),
    )


def insert_statement(namespace: str, table: str, cols: Sequence[str]) -> psql.Composed:
    """INSERT ... ON CONFLICT (insert_id) DO NOTHING with named parameters."""
    all_cols = ["insert_id", *cols]
    return psql.SQL("INSERT INTO {} ({}) VALUES ({}) ON CONFLICT (insert_id) DO NOTHING").format(
        psql.Identifier(namespace, table),
        psql.SQL(", ").join(psql.Identifier(c) for c in all_cols),
        psql.SQL(", ").join(psql.Placeholder(c) for c in all_cols),
    )


class PostgresSink(SinkClient):
    """Append-only PostgreSQL table; the namespace is a schema."""

    name = "postgres"

    def __init__(
        self,
        namespace: str,
        table: str,
        *,
        dsn: Optional[str] = None,
        pool_max: int = 4,
        pool: Optional[AsyncConnectionPool] = None,
    ):
        # an injected pool is the caller's to open
        self._opened = pool is not None
        if pool is None:
            if not dsn:
                raise ValueError("dsn required")
            pool = AsyncConnectionPool(
                conninfo=dsn, max_size=pool_max, kwargs={"autocommit": False}, open=False
            )
        self.pool = pool
        self.namespace = namespace
        self.table = table
        # column names of the destination table, loaded once
        self._columns: Optional[frozenset[str]] = None

    async def _fetch_exists(self, query: str, params: tuple) -> bool:
        await self._ensure_open()
        try:
            async with self.pool.connection() as conn:
                cur = await conn.execute(query, params)
                return (await cur.fetchone()) is not None
        except psycopg.Error as e:
            raise map_db_error(e) from e

    async def _execute(self, *statements: psql.Composable) -> None:
        await self._ensure_open()
        try:
            async with self.pool.connection() as conn:
                for stmt in statements:
                    await conn.execute(stmt)
                await conn.commit()
        except psycopg.Error as e:
            raise map_db_error(e) from e

    async def _ensure_open(self) -> None:
        if not self._opened:
            await self.pool.open()
            self._opened = True

    async def aclose(self) -> None:
        await self.pool.close()

    # ---------- namespace / table ----------

    async def namespace_exists(self) -> bool:
        return await self._fetch_exists(NAMESPACE_EXISTS, (self.namespace,))

    async def create_namespace(self) -> None:
        await self._execute(psql.SQL("CREATE SCHEMA {}").format(psql.Identifier(self.namespace)))
        logger.debug(f"Created schema {self.namespace}")

    async def table_exists(self) -> bool:
        return await self._fetch_exists(TABLE_EXISTS, (self.namespace, self.table))

    async def create_table(self, schema: TableSchema) -> None:
        await self._execute(
            create_table_statement(self.namespace, self.table, schema),
            partition_index_statement(self.namespace, self.table, schema),
        )
        self._columns = frozenset(["insert_id", *schema.field_names, INGESTED_AT])
        logger.debug(f"Created table {self.namespace}.{self.table}")

    # ---------- rows ----------

    async def table_columns(self) -> frozenset[str]:
        """Column names of the destination table, read once and cached."""
        if self._columns is not None:
            return self._columns
        await self._ensure_open()
        try:
            async with self.pool.connection() as conn:
                cur = await conn.execute(TABLE_COLUMNS, (self.namespace, self.table))
                found = frozenset(row[0] for row in await cur.fetchall())
        except psycopg.Error as e:
            raise map_db_error(e) from e
        # an empty result means the table is not there yet; ask again next time
        if found:
            self._columns = found
        return found

    async def insert_rows(self, rows: Sequence[BufferedRow], options: InsertOptions) -> None:
        """Insert one batch in a single transaction.

        ``skip_invalid_rows`` has no equivalent here: a bad row fails the
        whole batch.
        """
        if not rows:
            return
        # Column set comes from the rows; unknown keys are dropped only when asked to.
        cols = sorted({k for r in rows for k in r.json})
        if options.ignore_unknown_values:
            known = await self.table_columns()
            cols = [c for c in cols if c in known]
        data = [{"insert_id": r.insert_id, **{c: r.json.get(c) for c in cols}} for r in rows]
        stmt = insert_statement(self.namespace, self.table, cols)
        await self._ensure_open()
        try:
            async with self.pool.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.executemany(stmt, data)
                await conn.commit()
        except psycopg.Error as e:
            raise map_db_error(e) from e
