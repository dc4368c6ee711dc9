from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterator, Tuple

# In-process metrics registry for the pipeline (single process).
# Counters, gauges and summaries (sum, count), keyed by name + sorted labels.

LabelKey = Tuple[str, Tuple[Tuple[str, str], ...]]

_lock = threading.Lock()
_counters: Dict[LabelKey, float] = {}
_gauges: Dict[LabelKey, float] = {}
_summaries: Dict[LabelKey, Tuple[float, int]] = {}


def _key(name: str, labels: Dict[str, str] | None) -> LabelKey:
    return name, tuple(sorted((str(k), str(v)) for k, v in (labels or {}).items()))


def counter_inc(name: str, labels: Dict[str, str] | None = None, amount: float = 1.0) -> None:
    k = _key(name, labels)
    with _lock:
        _counters[k] = _counters.get(k, 0.0) + float(amount)


def gauge_inc(name: str, amount: float = 1.0, labels: Dict[str, str] | None = None) -> None:
    k = _key(name, labels)
    with _lock:
        _gauges[k] = _gauges.get(k, 0.0) + float(amount)


def gauge_dec(name: str, amount: float = 1.0, labels: Dict[str, str] | None = None) -> None:
    gauge_inc(name, -float(amount), labels)


def summary_observe(name: str, value: float, labels: Dict[str, str] | None = None) -> None:
    k = _key(name, labels)
    with _lock:
        s, c = _summaries.get(k, (0.0, 0))
        _summaries[k] = (s + float(value), c + 1)


@contextmanager
def observe_ms(name: str, labels: Dict[str, str] | None = None) -> Iterator[None]:
    """Record the wall time of the block (milliseconds) into a summary."""
    started = time.perf_counter()
    try:
        yield
    finally:
        summary_observe(name, (time.perf_counter() - started) * 1000.0, labels)


def counter_value(name: str, labels: Dict[str, str] | None = None) -> float:
    with _lock:
        return _counters.get(_key(name, labels), 0.0)


def reset() -> None:
    with _lock:
        _counters.clear()
        _gauges.clear()
        _summaries.clear()


def _fmt_labels(items: Tuple[Tuple[str, str], ...]) -> str:
    if not items:
        return ""
    return "{" + ",".join(f'{k}="{v}"' for k, v in items) + "}"


def render_prometheus() -> str:
    lines: list[str] = []
    with _lock:
        for (name, items), val in sorted(_counters.items()):
            lines.append(f"# TYPE {name} counter")
            lines.append(f"{name}{_fmt_labels(items)} {val}")
        for (name, items), val in sorted(_gauges.items()):
            lines.append(f"# TYPE {name} gauge")
            lines.append(f"{name}{_fmt_labels(items)} {val}")
        for (name, items), (s, c) in sorted(_summaries.items()):
            lines.append(f"# TYPE {name} summary")
            lines.append(f"{name}_sum{_fmt_labels(items)} {s}")
            lines.append(f"{name}_count{_fmt_labels(items)} {c}")
    lines.append(f"# EOF {int(time.time())}")
    return "\n".join(lines) + "\n"


def snapshot() -> dict:
    """Return current metrics as ``{counters: [...], gauges: [...], summaries: [...]}``."""
    with _lock:
        return {
            "counters": [{"name": n, "labels": dict(i), "value": v} for (n, i), v in _counters.items()],
            "gauges": [{"name": n, "labels": dict(i), "value": v} for (n, i), v in _gauges.items()],
            "summaries": [
                {"name": n, "labels": dict(i), "sum": s, "count": c} for (n, i), (s, c) in _summaries.items()
            ],
        }
