"""
In-process event source for upstream result events.

The exporter listens for ``data`` events (``{"result": ..., "test": ...}``)
and reports enqueue failures back as ``error`` events on the same source.
Listener failures are logged and never reach other listeners.

Example:
    bus = ResultEventBus()
    exporter.register_with(bus)

    async def on_error(exc):
        logger.error(f"export failed: {exc}")

    bus.on("error", on_error)
    await bus.emit("data", {"result": {...}, "test": {...}})
"""

from __future__ import annotations

from typing import Any, Protocol

from loguru import logger


class Listener(Protocol):
    """Async callable receiving the event payload."""

    async def __call__(self, payload: Any) -> None: ...


class EventSource(Protocol):
    """What the exporter needs from an upstream emitter."""

    def on(self, name: str, listener: Listener) -> None: ...

    def off(self, name: str, listener: Listener) -> None: ...

    async def emit(self, name: str, payload: Any) -> None: ...


class ResultEventBus:
    """Named-event pub/sub with per-listener error isolation.

    Thread-safe for asyncio (no threading/multiprocessing).
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, name: str, listener: Listener) -> None:
        subs = self._listeners.setdefault(name, [])
        if listener not in subs:
            subs.append(listener)
            logger.debug(f"Listener added for '{name}' (total: {len(subs)})")

    def off(self, name: str, listener: Listener) -> None:
        """Remove a listener; no-op if it was never added."""
        try:
            self._listeners.get(name, []).remove(listener)
        except ValueError:
            pass

    async def emit(self, name: str, payload: Any) -> None:
        subs = self._listeners.get(name)
        if not subs:
            if name == "error":
                logger.warning(f"Unhandled error event: {payload}")
            return

        # copy so listeners may unsubscribe while we iterate
        for listener in list(subs):
            try:
                await listener(payload)
            except Exception as exc:
                logger.warning(f"Listener for '{name}' failed: {type(exc).__name__}: {exc}")

    def listener_count(self, name: str) -> int:
        return len(self._listeners.get(name, []))
