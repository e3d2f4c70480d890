"""
Data models for the batch exporter.

Rows are flat, sink-shaped mappings. Inbound result events are validated with
pydantic; the shaper turns them into ``FlatResult`` rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

Scalar = Union[str, int, float, bool, None]
Row = Mapping[str, Any]


@dataclass(frozen=True)
class BufferedRow:
    """A row plus the deduplication token minted when it entered the buffer."""

    insert_id: str
    json: Mapping[str, Any] = field(repr=False)

    @classmethod
    def wrap(cls, insert_id: str, row: Union[Row, BaseModel]) -> "BufferedRow":
        if isinstance(row, BaseModel):
            data = row.model_dump(mode="json")
        else:
            data = dict(row)
        return cls(insert_id=insert_id, json=MappingProxyType(data))

    def to_dict(self) -> dict[str, Any]:
        return {"insertId": self.insert_id, "json": dict(self.json)}


class ProvisioningState(str, Enum):
    """Outcome of the destination existence check, cached per process."""

    UNKNOWN = "unknown"
    CREATED = "created"
    EXISTING = "existing"


@dataclass(frozen=True)
class InsertOptions:
    """Per-request options passed through to ``SinkClient.insert_rows``.

    ``skip_invalid_rows`` is honoured by BigQuery only; PostgreSQL inserts a
    batch atomically, so one invalid row fails the batch.
    """

    skip_invalid_rows: bool = False
    ignore_unknown_values: bool = False


class FlatResult(BaseModel):
    """One audit of one test run, flattened to the default table shape."""

    model_config = ConfigDict(frozen=True)

    score: int
    raw_value: int
    name: Optional[str] = None
    type: Optional[str] = None
    url: Optional[str] = None
    tested_at: datetime


# ---------- upstream result events ----------


class Audit(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    score: Any = None
    raw_value: Any = Field(default=None, alias="rawValue")


class AdvancedResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    url: Optional[str] = None
    audits: list[Audit] = Field(default_factory=list)


class Resultset(BaseModel):
    model_config = ConfigDict(extra="allow")

    advanced: Optional[AdvancedResult] = None


class RunInfo(BaseModel):
    """Identity of the test run that produced a result."""

    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    url: Optional[str] = None


class ResultEvent(BaseModel):
    """Payload of a ``data`` event: ``{"result": ..., "test": ...}``."""

    result: Resultset
    test: RunInfo
