"""
thresholds/models.py

User-adjustable alert thresholds.

ThresholdMetric — the six configurable metrics with their UI bounds
AlertThreshold  — (metric, value, enabled) as held by the ThresholdStore
ThresholdSet    — immutable per-tick view handed to the scoring engine
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import Mapping, NamedTuple


class _MetricInfo(NamedTuple):
    title: str
    unit: str
    default: float
    min_value: float
    max_value: float
    step: float


class ThresholdMetric(str, Enum):
    UPLOAD_RATE    = "upload_rate"
    DOWNLOAD_RATE  = "download_rate"
    CPU_USAGE      = "cpu_usage"
    BATTERY_DRAIN  = "battery_drain"
    TOTAL_UPLOAD   = "total_upload"
    TOTAL_DOWNLOAD = "total_download"

    @property
    def info(self) -> _MetricInfo:
        return _METRIC_INFO[self]

    @property
    def title(self) -> str:
        return _METRIC_INFO[self].title

    @property
    def unit(self) -> str:
        return _METRIC_INFO[self].unit

    @property
    def default_value(self) -> float:
        return _METRIC_INFO[self].default

    def in_bounds(self, value: float) -> bool:
        s = _METRIC_INFO[self]
        return s.min_value <= value <= s.max_value


_METRIC_INFO: dict[ThresholdMetric, _MetricInfo] = {
    ThresholdMetric.UPLOAD_RATE:    _MetricInfo("Instant Upload Rate",    "MB/h (rate)", 100, 10, 1000, 50),
    ThresholdMetric.DOWNLOAD_RATE:  _MetricInfo("Instant Download Rate",  "MB/h (rate)", 200, 10, 1000, 50),
    ThresholdMetric.CPU_USAGE:      _MetricInfo("CPU Usage",              "%",             60, 10,   95,  5),
    ThresholdMetric.BATTERY_DRAIN:  _MetricInfo("Battery Drain",          "%/h",            8,  2,   50,  1),
    ThresholdMetric.TOTAL_UPLOAD:   _MetricInfo("Last 1h Total Upload",   "MB (limit)",   200, 50, 2000, 100),
    ThresholdMetric.TOTAL_DOWNLOAD: _MetricInfo("Last 1h Total Download", "MB (limit)",   500, 100, 5000, 100),
}


@dataclass(frozen=True, slots=True)
class AlertThreshold:
    metric: ThresholdMetric
    value: float
    enabled: bool = True

    @classmethod
    def default(cls, metric: ThresholdMetric) -> "AlertThreshold":
        return cls(metric=metric, value=metric.default_value, enabled=True)

    def with_changes(self, value: float | None = None, enabled: bool | None = None) -> "AlertThreshold":
        changes: dict = {}
        if value is not None:
            changes["value"] = float(value)
        if enabled is not None:
            changes["enabled"] = bool(enabled)
        return replace(self, **changes)

    def to_dict(self) -> dict:
        s = self.metric.info
        return {
            "metric":    self.metric.value,
            "title":     s.title,
            "unit":      s.unit,
            "value":     self.value,
            "enabled":   self.enabled,
            "min_value": s.min_value,
            "max_value": s.max_value,
            "step":      s.step,
        }


def default_thresholds() -> list[AlertThreshold]:
    return [AlertThreshold.default(m) for m in ThresholdMetric]


class ThresholdSet:
    """
    Read-only view of every threshold, built once per tick.

    Missing metrics fall back to their defaults so the engine never sees a gap.
    """

    __slots__ = ("_by_metric",)

    def __init__(self, thresholds: list[AlertThreshold] | None = None) -> None:
        by_metric = {m: AlertThreshold.default(m) for m in ThresholdMetric}
        for t in thresholds or []:
            by_metric[t.metric] = t
        self._by_metric: Mapping[ThresholdMetric, AlertThreshold] = MappingProxyType(by_metric)

    def get(self, metric: ThresholdMetric) -> AlertThreshold:
        return self._by_metric[metric]

    def __iter__(self):
        return iter(self._by_metric.values())

    def __repr__(self) -> str:  # pragma: no cover
        parts = ", ".join(
            f"{t.metric.value}={t.value:g}{'' if t.enabled else '(off)'}"
            for t in self._by_metric.values()
        )
        return f"ThresholdSet({parts})"
