from __future__ import annotations

import asyncio
from time import perf_counter
from typing import Optional, Sequence

from loguru import logger

from .buffer import RowBuffer
from .errors import BatchDispatchError
from .metrics import EXPORTER_BATCH_LATENCY, EXPORTER_ROWS_TOTAL
from .models import BufferedRow, InsertOptions
from .sinks.base import SinkClient


class BatchDispatcher:
    """Sends one batch per call; a failed batch goes back to the buffer head."""

    def __init__(
        self,
        sink: SinkClient,
        buffer: RowBuffer,
        options: Optional[InsertOptions] = None,
        *,
        label: str = "",
    ):
        self._sink = sink
        self._buffer = buffer
        self._options = options or InsertOptions()
        self._label = label or sink.name

    async def dispatch(self, batch: Sequence[BufferedRow]) -> None:
        """Insert ``batch`` as a single request.

        Raises:
            BatchDispatchError: the sink failed; ``batch`` is back at the
                front of the buffer, unchanged.
        """
        if not batch:
            return
        t0 = perf_counter()
        try:
            await self._sink.insert_rows(batch, self._options)
        except asyncio.CancelledError:
            self._buffer.requeue_front(batch)
            raise
        except Exception as e:
            self._buffer.requeue_front(batch)
            EXPORTER_ROWS_TOTAL.labels(table=self._label, status="failure").inc(len(batch))
            logger.debug(f"Failed to dispatch {len(batch)} rows to {self._label}: {e}")
            raise BatchDispatchError(len(batch), e) from e
        finally:
            EXPORTER_BATCH_LATENCY.labels(table=self._label).observe(perf_counter() - t0)

        EXPORTER_ROWS_TOTAL.labels(table=self._label, status="success").inc(len(batch))
        logger.debug(f"Dispatched {len(batch)} rows to {self._label}")
