from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from ..models import BufferedRow, InsertOptions
from ..schema import TableSchema


class SinkClient(ABC):
    """Narrow async interface to the remote append-only store.

    Implementations raise ``SinkError`` (with ``code=409`` for already-exists
    conflicts) and nothing else for remote failures.
    """

    name: str = "sink"

    @abstractmethod
    async def namespace_exists(self) -> bool: ...

    @abstractmethod
    async def create_namespace(self) -> None: ...

    @abstractmethod
    async def table_exists(self) -> bool: ...

    @abstractmethod
    async def create_table(self, schema: TableSchema) -> None: ...

    @abstractmethod
    async def insert_rows(self, rows: Sequence[BufferedRow], options: InsertOptions) -> None: ...

    async def aclose(self) -> None:
        """Release client resources. Default: nothing to release."""

    async def __aenter__(self) -> "SinkClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
