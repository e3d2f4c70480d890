"""
Unit tests for metrics recording.
"""

import pytest
from prometheus_client import REGISTRY

from batch_exporter.buffer import RowBuffer
from batch_exporter.config import Destination, ExporterConfig
from batch_exporter.dispatcher import BatchDispatcher
from batch_exporter.errors import BatchDispatchError
from batch_exporter.exporter import BatchExporter
from batch_exporter.metrics import metrics_registry


def sample(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


@pytest.mark.asyncio
async def test_rows_counted_by_status(make_sink, rows):
    sink = make_sink(fail_inserts=1)
    buf = RowBuffer()
    buf.extend(rows(3))
    dispatcher = BatchDispatcher(sink, buf, label="m.rows")

    with pytest.raises(BatchDispatchError):
        await dispatcher.dispatch(buf.take(3))
    await dispatcher.dispatch(buf.take(3))

    assert sample("exporter_rows_total", table="m.rows", status="failure") == 3
    assert sample("exporter_rows_total", table="m.rows", status="success") == 3
    assert sample("exporter_batch_latency_seconds_count", table="m.rows") == 2


@pytest.mark.asyncio
async def test_drains_and_provisioning_counted(make_sink, rows):
    sink = make_sink(table=False)
    cfg = ExporterConfig(Destination("m", "drains"), batch_size=2, batch_timeout=3600, tick_interval=3600)

    async with BatchExporter(sink, cfg) as exporter:
        await exporter.put_records(rows(2))

    assert sample("exporter_provisioning_total", table="m.drains", outcome="created") == 1
    assert sample("exporter_drains_total", table="m.drains", trigger="size", outcome="success") == 1
    assert sample("exporter_drains_total", table="m.drains", trigger="close", outcome="success") == 1
    assert sample("exporter_buffer_depth", table="m.drains") == 0


def test_registry_exposes_collectors():
    assert metrics_registry.rows_total is not None
    assert metrics_registry.drains_total is not None
    assert metrics_registry.buffer_depth is not None
