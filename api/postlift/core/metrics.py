"""Fire-and-forget metrics sinks.

The engine only ever calls ``increment`` and ``timing``.  Neither may raise
into the caller: a broken sink must never change an engine result.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class MetricsSink(Protocol):
    def increment(self, name: str, tags: dict[str, Any] | None = None) -> None: ...

    def timing(self, name: str, elapsed_ms: float, tags: dict[str, Any] | None = None) -> None: ...


class NullMetrics:
    """Sink that drops everything."""

    def increment(self, name: str, tags: dict[str, Any] | None = None) -> None:
        return None

    def timing(self, name: str, elapsed_ms: float, tags: dict[str, Any] | None = None) -> None:
        return None


class LoggingMetrics:
    """Sink that writes counters and timers to the debug log and keeps running totals."""

    def __init__(self) -> None:
        self.counters: dict[str, int] = {}

    def increment(self, name: str, tags: dict[str, Any] | None = None) -> None:
        self.counters[name] = self.counters.get(name, 0) + 1
        logger.debug("metric %s +1 %s", name, tags or {})

    def timing(self, name: str, elapsed_ms: float, tags: dict[str, Any] | None = None) -> None:
        logger.debug("timer %s %.2fms %s", name, elapsed_ms, tags or {})


def safe_increment(sink: MetricsSink, name: str, tags: dict[str, Any] | None = None) -> None:
    try:
        sink.increment(name, tags)
    except Exception:
        logger.exception("Metrics sink failed on increment %s", name)


@contextmanager
def timed(sink: MetricsSink, name: str) -> Iterator[None]:
    """Report the wall time of the ``with`` block to ``sink``."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        try:
            sink.timing(name, elapsed_ms)
        except Exception:
            logger.exception("Metrics sink failed on timing %s", name)
