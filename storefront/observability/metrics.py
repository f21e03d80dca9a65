from __future__ import annotations

import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Dict, Tuple, Any, Optional

MetricKey = Tuple[str, Tuple[Tuple[str, str], ...]]


def _labels_tuple(labels: Optional[Dict[str, str]]) -> Tuple[Tuple[str, str], ...]:
    if not labels:
        return ()
    return tuple(sorted(labels.items()))


@dataclass
class Histogram:
    count: int = 0
    total: float = 0.0
    min_value: float = field(default=float("inf"))
    max_value: float = field(default=float("-inf"))

    def observe(self, value: float) -> None:
        self.count += 1
        self.total += value
        self.min_value = min(self.min_value, value)
        self.max_value = max(self.max_value, value)

    def snapshot(self) -> Dict[str, Any]:
        avg = self.total / self.count if self.count else 0.0
        return {
            "count": self.count,
            "avg": avg,
            "min": None if self.count == 0 else self.min_value,
            "max": None if self.count == 0 else self.max_value,
        }


_counter_lock = threading.Lock()
_counters: Dict[MetricKey, float] = defaultdict(float)
_gauges: Dict[MetricKey, float] = {}
_histograms: Dict[MetricKey, Histogram] = {}
MAX_EVENTS = 200
_events: "deque[Dict[str, Any]]" = deque(maxlen=MAX_EVENTS)


def increment_counter(name: str, amount: float = 1.0, labels: Optional[Dict[str, str]] = None) -> None:
    with _counter_lock:
        _counters[(name, _labels_tuple(labels))] += amount


def set_gauge(name: str, value: float, labels: Optional[Dict[str, str]] = None) -> None:
    with _counter_lock:
        _gauges[(name, _labels_tuple(labels))] = value


def observe_latency(name: str, value: float, labels: Optional[Dict[str, str]] = None) -> None:
    with _counter_lock:
        key = (name, _labels_tuple(labels))
        histogram = _histograms.setdefault(key, Histogram())
        histogram.observe(value)


def record_event(name: str, payload: Dict[str, Any]) -> None:
    event = {"name": name, "timestamp": time.time(), "payload": payload}
    with _counter_lock:
        _events.append(event)


def get_metrics_snapshot() -> Dict[str, Any]:
    with _counter_lock:
        counters: Dict[str, list] = {}
        for (name, labels), value in _counters.items():
            counters.setdefault(name, []).append({"labels": dict(labels), "value": value})
        gauges: Dict[str, list] = {}
        for (name, labels), value in _gauges.items():
            gauges.setdefault(name, []).append({"labels": dict(labels), "value": value})
        histograms: Dict[str, list] = {}
        for (name, labels), histogram in _histograms.items():
            histograms.setdefault(name, []).append({"labels": dict(labels), "stats": histogram.snapshot()})
        events = list(_events)
    return {
        "generated_at": time.time(),
        "counters": counters,
        "gauges": gauges,
        "histograms": histograms,
        "events": events,
    }


def reset_metrics() -> None:
    with _counter_lock:
        _counters.clear()
        _gauges.clear()
        _histograms.clear()
        _events.clear()


def counter_total(name: str, labels: Optional[Dict[str, str]] = None) -> float:
    """Sum a counter across label sets, optionally restricted to matching labels."""
    wanted = set((labels or {}).items())
    with _counter_lock:
        return sum(
            value
            for (counter_name, counter_labels), value in _counters.items()
            if counter_name == name and wanted.issubset(set(counter_labels))
        )


def events_named(name: str) -> list[Dict[str, Any]]:
    with _counter_lock:
        return [event for event in _events if event["name"] == name]
