"""
BatchExporter: buffer rows in memory and flush them to a sink in batches.

Flushes are triggered by size (``put_records`` reaching ``batch_size``) or by
time (the flush scheduler, once ``batch_timeout`` has passed since the last
flush attempt). Everything runs on one event loop, so the ``draining`` flag
is all it takes to keep drains single-flight: it is read and set with no
``await`` in between.

Usage:

    sink = BigQuerySink("metrics", "lighthouse")
    cfg = ExporterConfig(Destination("metrics", "lighthouse"), batch_size=500)
    async with BatchExporter(sink, cfg) as exporter:
        await exporter.put_records(rows)
    # remaining rows are drained on exit
"""

from __future__ import annotations

from dataclasses import dataclass
from time import monotonic
from typing import Any, Callable, Iterable, Optional, Union

import asyncio
from loguru import logger
from pydantic import BaseModel

from .buffer import RowBuffer
from .config import ExporterConfig
from .dispatcher import BatchDispatcher
from .errors import ExporterError
from .events import EventSource, Listener
from .metrics import EXPORTER_BUFFER_DEPTH, EXPORTER_DRAINS_TOTAL
from .models import BufferedRow, InsertOptions, ProvisioningState, Row
from .provisioner import Provisioner
from .scheduler import FlushScheduler
from .schema import DEFAULT_SCHEMA, TableSchema
from .shaper import AuditResultShaper, RecordShaper
from .sinks.base import SinkClient


@dataclass(frozen=True)
class ExporterHealth:
    buffered: int
    draining: bool
    provisioning: ProvisioningState
    scheduler_running: bool
    seconds_since_flush: float


class BatchExporter:
    def __init__(
        self,
        sink: SinkClient,
        config: ExporterConfig,
        *,
        schema: TableSchema = DEFAULT_SCHEMA,
        shaper: Optional[RecordShaper] = None,
        insert_options: Optional[InsertOptions] = None,
        id_factory: Optional[Callable[[], str]] = None,
        clock: Callable[[], float] = monotonic,
    ):
        self._sink = sink
        self._cfg = config
        self._label = str(config.destination)
        self._shaper: RecordShaper = shaper or AuditResultShaper()
        self._clock = clock

        self._buffer = RowBuffer(id_factory)
        self._provisioner = Provisioner(sink, schema, label=self._label)
        self._dispatcher = BatchDispatcher(sink, self._buffer, insert_options, label=self._label)
        self._scheduler = FlushScheduler(
            lambda: self.drain(trigger="timer"),
            lambda: self._last_flush,
            timeout=config.batch_timeout,
            tick_interval=config.tick_interval,
            clock=clock,
        )

        self._draining = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._last_flush = clock()
        self._listeners: dict[int, Listener] = {}

    # --------------- context management

    async def __aenter__(self) -> "BatchExporter":
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # --------------- lifecycle

    async def init(self) -> ProvisioningState:
        """Provision the destination, then start the flush scheduler.

        Raises:
            ProvisioningError: the destination could not be confirmed; the
                scheduler is not started.
        """
        logger.info(f"Initiating exporter for {self._label}..")
        state = await self._provisioner.ensure_destination_ready()
        self._scheduler.start()
        logger.info(f"Initiation done ({state.value}).")
        return state

    async def close(self) -> None:
        """Stop the scheduler and drain whatever is left.

        A drain already in flight is waited for first; the final drain's
        error, if any, propagates to the caller.

        Raises:
            BatchDispatchError: the final dispatch failed.
            ExporterError: rows are still buffered because the destination
                was never provisioned.
        """
        logger.info(f"Closing exporter for {self._label}..")
        await self._scheduler.stop()
        while self._draining:
            await self._idle.wait()
        await self.drain(trigger="close")
        if self._buffer:
            # only reachable when the destination was never provisioned
            raise ExporterError(
                f"{len(self._buffer)} rows undelivered: destination {self._label} not provisioned"
            )
        logger.info("Closed.")

    # --------------- public API

    async def put_records(self, rows: Iterable[Union[Row, BaseModel]]) -> None:
        """Buffer rows; drains (and waits for it) once ``batch_size`` is reached."""
        size = self._buffer.extend(rows)
        EXPORTER_BUFFER_DEPTH.labels(table=self._label).set(size)
        if size >= self._cfg.batch_size:
            await self.drain(trigger="size")

    async def drain(self, *, trigger: str = "manual") -> None:
        """Dispatch batches until the buffer is empty or a dispatch fails.

        Returns immediately if a drain is already running (it will pick up
        the rows) or if the destination has not been provisioned yet.

        Raises:
            BatchDispatchError: the failed batch is back at the buffer head.
        """
        if self._draining:
            return
        if not self._provisioner.ready:
            logger.debug(f"Drain deferred: {self._label} not provisioned ({len(self._buffer)} rows)")
            return

        self._draining = True
        self._idle.clear()
        self._last_flush = self._clock()
        outcome = "failure"
        try:
            while self._buffer:
                batch = self._buffer.take(self._cfg.batch_size)
                await self._dispatcher.dispatch(batch)
            outcome = "success"
        finally:
            self._draining = False
            self._idle.set()
            EXPORTER_BUFFER_DEPTH.labels(table=self._label).set(len(self._buffer))
            EXPORTER_DRAINS_TOTAL.labels(table=self._label, trigger=trigger, outcome=outcome).inc()

    # --------------- upstream events

    def register_with(self, source: EventSource) -> None:
        """Listen for ``data`` events on ``source``, shaping them into rows.

        Enqueue failures are re-emitted on ``source`` as ``error`` events.
        """
        key = id(source)
        if key in self._listeners:
            return

        async def on_data(payload: Any) -> None:
            try:
                rows = self._shaper(payload)
                if rows:
                    await self.put_records(rows)
            except Exception as exc:
                await source.emit("error", exc)

        self._listeners[key] = on_data
        source.on("data", on_data)
        logger.debug(f"Registered exporter for {self._label} with event source.")

    def unregister_from(self, source: EventSource) -> None:
        listener = self._listeners.pop(id(source), None)
        if listener is not None:
            source.off("data", listener)

    # --------------- introspection

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    @property
    def draining(self) -> bool:
        return self._draining

    @property
    def last_flush(self) -> float:
        return self._last_flush

    @property
    def provisioning_state(self) -> ProvisioningState:
        return self._provisioner.state

    def pending(self) -> list[BufferedRow]:
        """Buffered rows in dispatch order."""
        return self._buffer.snapshot()

    def health(self) -> ExporterHealth:
        return ExporterHealth(
            buffered=len(self._buffer),
            draining=self._draining,
            provisioning=self._provisioner.state,
            scheduler_running=self._scheduler.running,
            seconds_since_flush=self._clock() - self._last_flush,
        )
