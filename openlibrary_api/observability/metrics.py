from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from threading import Lock
from typing import Any

_ALLOWED_LABELS = {"method", "status", "operation"}
_lock = Lock()

MetricKey = tuple[str, tuple[tuple[str, str], ...]]

_counters: dict[MetricKey, int] = {}
_timers: dict[MetricKey, dict[str, float]] = {}


def _metric_key(name: str, labels: dict[str, Any] | None) -> MetricKey:
    if not labels:
        return name, ()
    normalized = [
        (key, str(value))
        for key, value in labels.items()
        if key in _ALLOWED_LABELS and value is not None
    ]
    return name, tuple(sorted(normalized))


def _render_key(key: MetricKey) -> str:
    name, labels = key
    if not labels:
        return name
    joined = ",".join(f"{k}={v}" for k, v in labels)
    return f"{name}{{{joined}}}"


def increment(name: str, value: int = 1, labels: dict[str, Any] | None = None) -> None:
    key = _metric_key(name, labels)
    with _lock:
        _counters[key] = _counters.get(key, 0) + value


def observe_ms(name: str, ms: float, labels: dict[str, Any] | None = None) -> None:
    key = _metric_key(name, labels)
    with _lock:
        current = _timers.setdefault(key, {"count": 0.0, "sum": 0.0, "min": ms, "max": ms})
        current["count"] += 1.0
        current["sum"] += ms
        current["min"] = min(current["min"], ms)
        current["max"] = max(current["max"], ms)


@contextmanager
def timed(name: str, labels: dict[str, Any] | None = None) -> Iterator[None]:
    """Record the wall time of the ``with`` block, in milliseconds, under ``name``."""
    started = time.perf_counter()
    try:
        yield
    finally:
        observe_ms(name, (time.perf_counter() - started) * 1000.0, labels=labels)


def counter_value(name: str, labels: dict[str, Any] | None = None) -> int:
    with _lock:
        return _counters.get(_metric_key(name, labels), 0)


def snapshot() -> dict[str, Any]:
    """Return counters and timer aggregates keyed by ``name{label=value,...}``."""
    with _lock:
        counters = {_render_key(key): value for key, value in _counters.items()}
        timers: dict[str, dict[str, float]] = {}
        for key, values in _timers.items():
            count = values["count"]
            timers[_render_key(key)] = {
                "count": int(count),
                "sum": values["sum"],
                "min": values["min"],
                "max": values["max"],
                "avg": values["sum"] / count if count else 0.0,
            }
    return {"counters": counters, "timers_ms": timers}


def reset() -> None:
    with _lock:
        _counters.clear()
        _timers.clear()
