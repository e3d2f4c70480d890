"""
Demo: buffered export of audit results

Feeds result events through a ResultEventBus into a BatchExporter backed by an
in-memory sink that fails every third request, so you can watch failed
batches go back to the head of the buffer and get retried.

No cloud or database dependencies.
"""

import asyncio
import random
from typing import Sequence

from loguru import logger

from batch_exporter import (
    BatchDispatchError,
    BatchExporter,
    Destination,
    ExporterConfig,
    ResultEventBus,
    SinkClient,
    SinkError,
)
from batch_exporter.models import BufferedRow, InsertOptions


class FlakyMemorySink(SinkClient):
    """Keeps rows in a dict keyed by insert id; fails every ``fail_every``th insert."""

    name = "memory"

    def __init__(self, fail_every: int = 3, delay: float = 0.05):
        self.fail_every = fail_every
        self.delay = delay
        self.requests = 0
        self.rows: dict[str, dict] = {}
        self.table = False

    async def namespace_exists(self) -> bool:
        return True

    async def create_namespace(self) -> None:
        pass

    async def table_exists(self) -> bool:
        return self.table

    async def create_table(self, schema) -> None:
        self.table = True
        logger.info(f"Created table with columns {schema.field_names}")

    async def insert_rows(self, rows: Sequence[BufferedRow], options: InsertOptions) -> None:
        self.requests += 1
        await asyncio.sleep(self.delay)  # Simulate network I/O
        if self.requests % self.fail_every == 0:
            raise SinkError("simulated backend error", code=503)
        for r in rows:
            self.rows[r.insert_id] = dict(r.json)


def fake_event(i: int) -> dict:
    audits = [
        {"id": "first-contentful-paint", "score": random.random(), "rawValue": random.uniform(800, 3000)},
        {"id": "speed-index", "score": str(random.randint(40, 100)), "rawValue": "n/a"},
    ]
    return {
        "result": {"advanced": {"url": f"https://example.com/{i}", "audits": audits}},
        "test": {"name": f"page-{i}", "url": f"https://example.com/{i}"},
    }


async def main():
    logger.info("Buffered exporter demo")
    logger.info("=" * 70)

    bus = ResultEventBus()
    sink = FlakyMemorySink()
    cfg = ExporterConfig(Destination("demo", "results"), batch_size=8, batch_timeout=0.5, tick_interval=0.1)

    async def on_error(exc):
        logger.warning(f"Export error (rows stay buffered): {exc}")

    bus.on("error", on_error)

    async with BatchExporter(sink, cfg) as exporter:
        exporter.register_with(bus)
        for i in range(25):
            await bus.emit("data", fake_event(i))
            await asyncio.sleep(0.02)
        logger.info(f"Health before shutdown: {exporter.health()}")
        while exporter.buffered:
            try:
                await exporter.drain()
            except BatchDispatchError as e:
                logger.warning(f"Retrying: {e}")
            await asyncio.sleep(0.05)

    logger.info("=" * 70)
    logger.info(f"Requests: {sink.requests}, rows stored: {len(sink.rows)} (expected 50)")


if __name__ == "__main__":
    asyncio.run(main())
