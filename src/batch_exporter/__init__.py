"""
Batch Exporter

Buffers flat rows in memory and streams them to an append-only analytics
table in batches, flushing on size or on a timer.

Usage:
    from batch_exporter import BatchExporter, ExporterConfig, Destination
    from batch_exporter.sinks.bigquery import BigQuerySink

    sink = BigQuerySink("metrics", "lighthouse")
    cfg = ExporterConfig(Destination("metrics", "lighthouse"), batch_size=500)
    async with BatchExporter(sink, cfg) as exporter:
        exporter.register_with(bus)
        await exporter.put_records([{"score": 90, "name": "home"}])
"""

from .config import Destination, ExporterConfig, Settings, get_settings
from .errors import (
    BatchDispatchError,
    ExporterError,
    ProvisioningError,
    SinkError,
    SinkInsertError,
)
from .events import ResultEventBus
from .exporter import BatchExporter, ExporterHealth
from .models import BufferedRow, FlatResult, InsertOptions, ProvisioningState, ResultEvent
from .schema import DEFAULT_SCHEMA, SchemaField, TableSchema, TimePartitioning
from .shaper import AuditResultShaper, PassthroughShaper, RecordShaper
from .sinks import SinkClient, build_sink

__version__ = "1.0.0"
__all__ = [
    "BatchExporter",
    "ExporterHealth",
    "ExporterConfig",
    "Destination",
    "Settings",
    "get_settings",
    "SinkClient",
    "build_sink",
    "BufferedRow",
    "FlatResult",
    "InsertOptions",
    "ProvisioningState",
    "ResultEvent",
    "ResultEventBus",
    "RecordShaper",
    "AuditResultShaper",
    "PassthroughShaper",
    "TableSchema",
    "SchemaField",
    "TimePartitioning",
    "DEFAULT_SCHEMA",
    "ExporterError",
    "SinkError",
    "SinkInsertError",
    "ProvisioningError",
    "BatchDispatchError",
]
