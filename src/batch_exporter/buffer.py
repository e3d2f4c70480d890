from __future__ import annotations

from collections import deque
from typing import Callable, Iterable, Optional, Sequence, Union

from pydantic import BaseModel

from .models import BufferedRow, Row
from .utils import generate_id


class RowBuffer:
    """Unbounded FIFO of rows awaiting dispatch.

    Tokens are minted in ``extend`` and nowhere else; ``requeue_front`` puts an
    already-wrapped batch back ahead of everything else without touching it.
    Not thread-safe: all mutation happens on the event loop.
    """

    def __init__(self, id_factory: Optional[Callable[[], str]] = None):
        self._rows: deque[BufferedRow] = deque()
        self._new_id = id_factory or generate_id

    def extend(self, rows: Iterable[Union[Row, BaseModel]]) -> int:
        """Wrap and append rows; returns the resulting buffer length."""
        self._rows.extend(BufferedRow.wrap(self._new_id(), r) for r in rows)
        return len(self._rows)

    def take(self, max_count: int) -> list[BufferedRow]:
        """Pop up to ``max_count`` rows from the head, oldest first."""
        n = min(max_count, len(self._rows))
        return [self._rows.popleft() for _ in range(n)]

    def requeue_front(self, batch: Sequence[BufferedRow]) -> None:
        """Reinsert a failed batch at the head, preserving its order."""
        self._rows.extendleft(reversed(batch))

    def snapshot(self) -> list[BufferedRow]:
        return list(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def __bool__(self) -> bool:
        return bool(self._rows)
