"""
Record shapers: turn a rich upstream event into flat, sink-shaped rows.

Shapers are pure and never raise on bad field values; numeric fields that
cannot be parsed fall back to ``INT_SENTINEL``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Mapping, Protocol, Sequence, Union, runtime_checkable

from pydantic import BaseModel

from .models import FlatResult, ResultEvent, Row
from .utils import coerce_int, utc_now


@runtime_checkable
class RecordShaper(Protocol):
    def __call__(self, event: Any) -> Sequence[Union[Row, BaseModel]]: ...


class PassthroughShaper:
    """Treat the event itself as a single row (or a list of rows)."""

    def __call__(self, event: Any) -> Sequence[Union[Row, BaseModel]]:
        if isinstance(event, (Mapping, BaseModel)):
            return [event]
        return list(event)


class AuditResultShaper:
    """One ``FlatResult`` per audit of a ``{result, test}`` event.

    Events without an ``advanced`` section produce no rows.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock

    def __call__(self, event: Union[ResultEvent, Mapping[str, Any]]) -> list[FlatResult]:
        if not isinstance(event, ResultEvent):
            event = ResultEvent.model_validate(event)
        advanced = event.result.advanced
        if advanced is None:
            return []

        tested_at = self._clock()
        return [
            FlatResult(
                score=coerce_int(audit.score),
                raw_value=coerce_int(audit.raw_value),
                name=event.test.name,
                type=audit.id,
                url=event.test.url,
                tested_at=tested_at,
            )
            for audit in advanced.audits
        ]
