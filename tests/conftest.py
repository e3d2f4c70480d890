"""
Pytest configuration and fixtures for batch_exporter.

Provides an in-memory sink and small helpers shared by the unit tests.
"""

import asyncio
import sys
from typing import Callable, Optional, Sequence

import pytest

from batch_exporter.config import Destination, ExporterConfig
from batch_exporter.errors import SinkError
from batch_exporter.models import BufferedRow, InsertOptions
from batch_exporter.schema import TableSchema
from batch_exporter.sinks.base import SinkClient

# Set policy *before* pytest-asyncio creates any loops
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


class FakeSink(SinkClient):
    """In-memory sink that records every call.

    ``fail_inserts`` fails that many insert attempts before succeeding;
    ``gate`` (if set) holds each insert until the event is set;
    ``on_insert`` is called with the batch when an insert starts.
    """

    name = "fake"

    def __init__(
        self,
        *,
        namespace: bool = True,
        table: bool = True,
        fail_inserts: int = 0,
        gate: Optional[asyncio.Event] = None,
        on_insert: Optional[Callable[[Sequence[BufferedRow]], None]] = None,
    ):
        self.has_namespace = namespace
        self.has_table = table
        self.fail_inserts = fail_inserts
        self.gate = gate
        self.on_insert = on_insert
        self.calls: list[str] = []
        self.attempts: list[list[BufferedRow]] = []
        self.inserts: list[list[BufferedRow]] = []
        self.options: list[InsertOptions] = []
        self.schema: Optional[TableSchema] = None
        self.closed = False
        self.errors: dict[str, Exception] = {}

    def _maybe_raise(self, op: str) -> None:
        exc = self.errors.get(op)
        if exc is not None:
            raise exc

    async def namespace_exists(self) -> bool:
        self.calls.append("namespace_exists")
        await asyncio.sleep(0)
        self._maybe_raise("namespace_exists")
        return self.has_namespace

    async def create_namespace(self) -> None:
        self.calls.append("create_namespace")
        self._maybe_raise("create_namespace")
        self.has_namespace = True
        await asyncio.sleep(0)

    async def table_exists(self) -> bool:
        self.calls.append("table_exists")
        await asyncio.sleep(0)
        self._maybe_raise("table_exists")
        return self.has_table

    async def create_table(self, schema: TableSchema) -> None:
        self.calls.append("create_table")
        self._maybe_raise("create_table")
        self.schema = schema
        self.has_table = True
        await asyncio.sleep(0)

    async def insert_rows(self, rows: Sequence[BufferedRow], options: InsertOptions) -> None:
        batch = list(rows)
        self.attempts.append(batch)
        self.options.append(options)
        if self.on_insert is not None:
            self.on_insert(batch)
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.fail_inserts > 0:
            self.fail_inserts -= 1
            raise SinkError("backend unavailable", code=503)
        self.inserts.append(batch)

    async def aclose(self) -> None:
        self.closed = True

    @property
    def inserted_rows(self) -> list[BufferedRow]:
        return [r for batch in self.inserts for r in batch]


@pytest.fixture
def make_sink():
    """Factory for FakeSink with custom behaviour."""
    return FakeSink


@pytest.fixture
def sink():
    """Fresh FakeSink with namespace and table already present."""
    return FakeSink()


@pytest.fixture
def destination():
    return Destination("metrics", "lighthouse")


@pytest.fixture
def make_config(destination):
    """Build an ExporterConfig whose timer never fires unless asked to."""

    def _make(batch_size: int = 10, batch_timeout: float = 3600.0, tick_interval: float = 3600.0):
        return ExporterConfig(
            destination=destination,
            batch_size=batch_size,
            batch_timeout=batch_timeout,
            tick_interval=tick_interval,
        )

    return _make


def make_rows(n: int, start: int = 0) -> list[dict]:
    return [{"score": i, "name": f"row-{i}"} for i in range(start, start + n)]


@pytest.fixture
def rows():
    return make_rows
