"""
aggregation/latest.py

LatestSampleStore — last known good value of every metric.

Metric sources push partial MetricSample objects at their own cadence;
the engine pulls an immutable MetricSnapshot once per tick without waiting
for a fresh sample. A missing or non-numeric field keeps the previous value,
so a momentarily unavailable source degrades to "no change since last tick".

Out-of-range values are clamped here, at the input boundary, so the scoring
path never sees negative rates or CPU above 100%.
"""

from __future__ import annotations

import logging
import math
import threading

from ..metrics import METRICS
from ..models import MetricSample, MetricSnapshot, ThermalLevel

logger = logging.getLogger(__name__)

# field name → (lower bound, upper bound); None means unbounded on that side
_BOUNDS: dict[str, tuple[float | None, float | None]] = {
    "upload_bps":                (0.0, None),
    "download_bps":              (0.0, None),
    "cumulative_upload_bytes":   (0.0, None),
    "cumulative_download_bytes": (0.0, None),
    "cpu_percent":               (0.0, 100.0),
    "battery_level_percent":     (0.0, 100.0),
    "battery_drain_per_hour":    (None, None),
}

_COUNTER_FIELDS = frozenset({"cumulative_upload_bytes", "cumulative_download_bytes"})


def _clean_number(value: object, lo: float | None, hi: float | None) -> float | None:
    """Return a finite, clamped float or None if *value* is unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if not math.isfinite(f):
        return None
    if lo is not None and f < lo:
        f = lo
    if hi is not None and f > hi:
        f = hi
    return f


class LatestSampleStore:
    """
    Thread-safe holder of the most recent sanitised metric values.

    Writers: metric sources (any thread / task).
    Reader:  ThreatEngine.tick() via snapshot().
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._values: dict[str, float] = {
            "upload_bps":                0.0,
            "download_bps":              0.0,
            "cumulative_upload_bytes":   0.0,
            "cumulative_download_bytes": 0.0,
            "cpu_percent":               0.0,
            "battery_level_percent":     100.0,
            "battery_drain_per_hour":    0.0,
        }
        self._thermal = ThermalLevel.NOMINAL
        self._last_update: float | None = None
        # cumulative counter fields a source has actually supplied
        self._counters_seen: set[str] = set()

    def update(self, sample: MetricSample) -> int:
        """
        Merge *sample* into the store.

        Returns the number of fields accepted.
        """
        METRICS.samples_received.inc()
        accepted: dict[str, float] = {}
        rejected: list[str] = []

        for name, (lo, hi) in _BOUNDS.items():
            raw = getattr(sample, name)
            if raw is None:
                continue
            cleaned = _clean_number(raw, lo, hi)
            if cleaned is None:
                rejected.append(name)
                continue
            accepted[name] = cleaned

        thermal: ThermalLevel | None = None
        if sample.thermal_level is not None:
            try:
                thermal = ThermalLevel.coerce(sample.thermal_level)
            except (TypeError, ValueError):
                rejected.append("thermal_level")

        if rejected:
            METRICS.sample_fields_rejected.inc(len(rejected))
            logger.debug("Ignoring unusable metric fields %s — keeping last values", rejected)

        with self._lock:
            self._values.update(accepted)
            self._counters_seen.update(_COUNTER_FIELDS.intersection(accepted))
            if thermal is not None:
                self._thermal = thermal
            if accepted or thermal is not None:
                self._last_update = sample.timestamp

        return len(accepted) + (1 if thermal is not None else 0)

    def snapshot(self, now: float) -> MetricSnapshot:
        """Build the immutable per-tick snapshot from the latest values."""
        with self._lock:
            values = dict(self._values)
            thermal = self._thermal
        return MetricSnapshot(timestamp=now, thermal_level=thermal, **values)

    @property
    def last_update(self) -> float | None:
        """Timestamp of the last accepted sample, or None if nothing arrived yet."""
        with self._lock:
            return self._last_update

    @property
    def has_counters(self) -> bool:
        """
        True once both cumulative byte counters have come from a real sample.

        Until then the snapshot carries placeholder zeros that must not be
        used as a reference point for windowed totals.
        """
        with self._lock:
            return self._counters_seen == _COUNTER_FIELDS
