from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Optional


@dataclass(frozen=True)
class SchemaField:
    name: str
    type: str  # INTEGER | FLOAT | STRING | BOOLEAN | TIMESTAMP
    mode: str = "NULLABLE"


@dataclass(frozen=True)
class TimePartitioning:
    """Time partitioning policy; ``field=None`` partitions on ingestion time."""

    type: str = "DAY"
    field: Optional[str] = None


@dataclass(frozen=True)
class TableSchema:
    fields: tuple[SchemaField, ...]
    time_partitioning: Optional[TimePartitioning] = field(default_factory=TimePartitioning)

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def to_dict(self) -> dict:
        out: dict = {"schema": {"fields": [asdict(f) for f in self.fields]}}
        if self.time_partitioning is not None:
            tp = {"type": self.time_partitioning.type}
            if self.time_partitioning.field:
                tp["field"] = self.time_partitioning.field
            out["timePartitioning"] = tp
        return out


# Default shape of a flattened audit result row
DEFAULT_SCHEMA = TableSchema(
    fields=(
        SchemaField("score", "INTEGER"),
        SchemaField("raw_value", "INTEGER"),
        SchemaField("name", "STRING"),
        SchemaField("type", "STRING"),
        SchemaField("url", "STRING"),
        SchemaField("tested_at", "TIMESTAMP"),
    ),
    time_partitioning=TimePartitioning(type="DAY"),
)
