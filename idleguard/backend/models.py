"""
backend/models.py

Shared dataclasses for every stage of the monitoring loop.
Defining them here locks the contracts between the metric source,
the threat engine and the presentation layer.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from enum import Enum


# ---------------------------------------------------------------------------
# Ordinal enums
# ---------------------------------------------------------------------------

class ThermalLevel(int, Enum):
    NOMINAL  = 0
    FAIR     = 1
    SERIOUS  = 2
    CRITICAL = 3

    @classmethod
    def coerce(cls, value: object) -> "ThermalLevel":
        """Map any ordinal-ish input onto a level, clamping to [0, 3]."""
        if isinstance(value, ThermalLevel):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"unknown thermal level {value!r}") from None
        level = int(value)  # type: ignore[call-overload]
        return cls(min(3, max(0, level)))


class ThreatLevel(str, Enum):
    NORMAL   = "NORMAL"
    WARNING  = "WARNING"
    ALERT    = "ALERT"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _THREAT_RANK[self]

    @property
    def message(self) -> str:
        return _THREAT_MESSAGES[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ThreatLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, ThreatLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, ThreatLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, ThreatLevel):
            return NotImplemented
        return self.rank >= other.rank


_THREAT_RANK = {
    ThreatLevel.NORMAL:   0,
    ThreatLevel.WARNING:  1,
    ThreatLevel.ALERT:    2,
    ThreatLevel.CRITICAL: 3,
}

_THREAT_MESSAGES = {
    ThreatLevel.NORMAL:   "Your device is secure",
    ThreatLevel.WARNING:  "Elevated activity detected",
    ThreatLevel.ALERT:    "Suspicious activity detected",
    ThreatLevel.CRITICAL: "Critical threat detected",
}


# ---------------------------------------------------------------------------
# Stage 1 — Metric source output
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class MetricSample:
    """
    Partial reading pushed by a metric source.

    Every field is optional: a source only fills what it measured this round.
    None (or a non-numeric value) means "unavailable" and leaves the last
    known good value untouched in LatestSampleStore.
    """

    timestamp: float = field(default_factory=time.time)
    upload_bps: float | None = None
    download_bps: float | None = None
    cumulative_upload_bytes: float | None = None
    cumulative_download_bytes: float | None = None
    cpu_percent: float | None = None
    battery_level_percent: float | None = None
    battery_drain_per_hour: float | None = None
    thermal_level: int | ThermalLevel | None = None


# ---------------------------------------------------------------------------
# Stage 2 — Engine input (one per tick)
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class MetricSnapshot:
    """Sanitised, immutable view of the latest metrics for one tick."""

    timestamp: float = 0.0
    upload_bps: float = 0.0
    """Instantaneous upload rate, bytes/s (>= 0)."""

    download_bps: float = 0.0
    """Instantaneous download rate, bytes/s (>= 0)."""

    cumulative_upload_bytes: float = 0.0
    cumulative_download_bytes: float = 0.0

    cpu_percent: float = 0.0
    """Total CPU usage in [0, 100]."""

    battery_level_percent: float = 100.0
    battery_drain_per_hour: float = 0.0
    """Percent per hour; negative while charging."""

    thermal_level: ThermalLevel = ThermalLevel.NOMINAL

    threat_score: int = 0
    threat_level: ThreatLevel = ThreatLevel.NORMAL
    """Written by the engine through with_threat(); never an input."""

    def with_threat(self, score: int, level: ThreatLevel) -> "MetricSnapshot":
        return replace(self, threat_score=score, threat_level=level)

    def to_dict(self) -> dict:
        return {
            "timestamp":                 self.timestamp,
            "upload_bps":                self.upload_bps,
            "download_bps":              self.download_bps,
            "cumulative_upload_bytes":   self.cumulative_upload_bytes,
            "cumulative_download_bytes": self.cumulative_download_bytes,
            "cpu_percent":               self.cpu_percent,
            "battery_level_percent":     self.battery_level_percent,
            "battery_drain_per_hour":    self.battery_drain_per_hour,
            "thermal_level":             self.thermal_level.name,
            "threat_score":              self.threat_score,
            "threat_level":              self.threat_level.value,
        }
