from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator

logger = logging.getLogger("pagewalk")


@dataclass(frozen=True)
class FetchEvent:
    """Represents a single API request for tracing."""

    operation: str
    endpoint: str
    page_number: int | None = None
    params: dict[str, Any] | None = None
    duration_ms: float = 0.0
    result_count: int | None = None


class _ObservabilityState:
    """Global mutable state for observability."""

    def __init__(self) -> None:
        self.enabled: bool = False
        self.slow_fetch_threshold_ms: float = 1000.0
        self.listeners: list[Callable[[FetchEvent], Any]] = []
        self.events: list[FetchEvent] = []
        self.capture_events: bool = False


_state = _ObservabilityState()


def enable_tracing(slow_fetch_ms: float = 1000.0, capture_events: bool = False) -> None:
    """Enable request tracing and observability."""
    _state.enabled = True
    _state.slow_fetch_threshold_ms = slow_fetch_ms
    _state.capture_events = capture_events


def disable_tracing() -> None:
    """Disable tracing and clear all state."""
    _state.enabled = False
    _state.slow_fetch_threshold_ms = 1000.0
    _state.listeners.clear()
    _state.events.clear()
    _state.capture_events = False


def get_events() -> list[FetchEvent]:
    """Return captured events."""
    return list(_state.events)


def clear_events() -> None:
    """Clear captured events."""
    _state.events.clear()


def add_listener(callback: Callable[[FetchEvent], Any]) -> None:
    """Register a listener that receives FetchEvent on each request."""
    _state.listeners.append(callback)


def remove_listener(callback: Callable[[FetchEvent], Any]) -> None:
    """Remove a previously registered listener."""
    _state.listeners.remove(callback)


def emit_event(event: FetchEvent) -> None:
    """Emit a fetch event: store, log slow fetches, notify listeners."""
    if not _state.enabled:
        return

    if _state.capture_events:
        _state.events.append(event)

    if event.duration_ms > _state.slow_fetch_threshold_ms:
        logger.warning(
            "Slow fetch: %s on %s took %.1fms (threshold: %.1fms)",
            event.operation,
            event.endpoint,
            event.duration_ms,
            _state.slow_fetch_threshold_ms,
        )

    for listener in _state.listeners:
        listener(event)


@contextmanager
def track_fetch(
    operation: str,
    endpoint: str,
    page_number: int | None = None,
    params: dict[str, Any] | None = None,
) -> Iterator[dict[str, Any]]:
    """Context manager that times a request and emits a FetchEvent.

    The event is emitted even when the wrapped block raises; a failed request
    has no result_count.
    """
    if not _state.enabled:
        yield {"result_count": None}
        return

    start = time.perf_counter()
    ctx: dict[str, Any] = {"result_count": None}
    try:
        yield ctx
    finally:
        duration_ms = (time.perf_counter() - start) * 1000
        event = FetchEvent(
            operation=operation,
            endpoint=endpoint,
            page_number=page_number,
            params=params,
            duration_ms=duration_ms,
            result_count=ctx.get("result_count"),
        )
        emit_event(event)
