"""
Sink clients for the batch exporter.

Each adapter exposes the same five operations (see ``SinkClient``) and maps
its library's failures to ``SinkError``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import SinkClient

if TYPE_CHECKING:
    from ..config import Settings


def build_sink(settings: "Settings") -> SinkClient:
    """Instantiate the sink selected by ``settings.SINK``."""
    if settings.SINK == "bigquery":
        from .bigquery import BigQuerySink

        return BigQuerySink(
            settings.DATASET,
            settings.TABLE,
            project_id=settings.PROJECT_ID,
            location=settings.LOCATION,
        )
    if settings.SINK == "postgres":
        from .postgres import PostgresSink

        return PostgresSink(
            settings.DATASET, settings.TABLE, dsn=settings.DSN, pool_max=settings.POOL_MAX
        )
    raise ValueError(f"unknown sink {settings.SINK!r}")


__all__ = ["SinkClient", "build_sink"]
