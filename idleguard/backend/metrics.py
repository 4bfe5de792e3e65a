"""
backend/metrics.py

Process-wide counters for the sampling side of the loop (metric sources,
sample store, pipeline queues). Engine and gate counters live on their own
`stats` dicts; these are the ones touched from more than one task.

Usage:
    from idleguard.backend.metrics import METRICS
    METRICS.samples_received.inc()
    METRICS.as_dict()  # {"samples_received": 1, ...}
"""

import threading


class Counter:
    """Monotonic integer guarded by its own lock."""

    __slots__ = ("name", "_value", "_lock")

    def __init__(self, name: str) -> None:
        self.name = name
        self._value = 0
        self._lock = threading.Lock()

    def inc(self, amount: int = 1) -> None:
        with self._lock:
            self._value += amount

    def reset(self) -> None:
        with self._lock:
            self._value = 0

    @property
    def value(self) -> int:
        return self._value

    def __repr__(self) -> str:  # pragma: no cover
        return f"Counter({self.name}={self._value})"


class Metrics:
    def __init__(self) -> None:
        # MetricSample objects pushed into LatestSampleStore
        self.samples_received = Counter("samples_received")
        # fields dropped as missing or non-numeric; last good value kept
        self.sample_fields_rejected = Counter("sample_fields_rejected")
        # psutil reads that raised
        self.sampler_errors = Counter("sampler_errors")
        # incidents / notifications evicted from a full queue
        self.queue_items_dropped = Counter("queue_items_dropped")

    def counters(self) -> list[Counter]:
        return [c for c in vars(self).values() if isinstance(c, Counter)]

    def as_dict(self) -> dict[str, int]:
        return {c.name: c.value for c in self.counters()}

    def reset_all(self) -> None:
        for c in self.counters():
            c.reset()


METRICS = Metrics()
