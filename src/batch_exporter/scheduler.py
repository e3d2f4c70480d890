from __future__ import annotations

import asyncio
from time import monotonic
from typing import Awaitable, Callable, Optional

from loguru import logger


class FlushScheduler:
    """Background nudge: drain when no flush was attempted for ``timeout`` seconds.

    ``last_flush`` returns the monotonic time of the most recent flush attempt.
    Errors from the drain are logged and swallowed; the scheduler keeps ticking.
    """

    def __init__(
        self,
        drain: Callable[[], Awaitable[None]],
        last_flush: Callable[[], float],
        *,
        timeout: float,
        tick_interval: float = 1.0,
        clock: Callable[[], float] = monotonic,
    ):
        self._drain = drain
        self._last_flush = last_flush
        self._timeout = timeout
        self._tick = tick_interval
        self._clock = clock
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._run(), name="exporter-flush-scheduler")

    async def stop(self) -> None:
        """Stop ticking; waits for a tick that is mid-drain to finish."""
        if self._task is None:
            return
        self._stop.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._tick)
            except asyncio.TimeoutError:
                await self.tick()

    def due(self) -> bool:
        return self._clock() - self._last_flush() >= self._timeout

    async def tick(self) -> None:
        if not self.due():
            return
        try:
            await self._drain()
            logger.debug("Drained buffer from flush interval")
        except Exception as exc:
            logger.warning(f"Failed to drain buffer from flush interval: {exc}")
