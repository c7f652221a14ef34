"""Observability: per-run counters and timers, logged as a run summary."""

import time
from contextlib import contextmanager
from typing import Any

import structlog

logger = structlog.get_logger().bind(source="observability")


def _describe(durations: list[float]) -> dict[str, Any]:
    if not durations:
        return {"count": 0}
    total = sum(durations)
    return {
        "count": len(durations),
        "total_s": round(total, 4),
        "avg_s": round(total / len(durations), 4),
        "max_s": round(max(durations), 4),
    }


class Metrics:
    """Dict-based collector for refresh counters and subject timings."""

    def __init__(self):
        self._counters: dict[str, int] = {}
        self._timers: dict[str, list[float]] = {}

    def counter(self, name: str, value: int = 1):
        self._counters[name] = self._counters.get(name, 0) + value

    def get(self, name: str) -> int:
        return self._counters.get(name, 0)

    @contextmanager
    def timer(self, name: str):
        """Record the wall time of the block, also when it raises."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._timers.setdefault(name, []).append(time.monotonic() - start)

    def summary(self) -> dict[str, Any]:
        return {
            "counters": dict(self._counters),
            "timers": {name: _describe(d) for name, d in self._timers.items()},
        }

    def reset(self):
        self._counters.clear()
        self._timers.clear()


# Module-level singleton
metrics = Metrics()


def log_run_summary(collector: Metrics | None = None):
    """Log counters and timer stats via structlog."""
    summary = (collector or metrics).summary()
    logger.info("run_summary", **summary)
