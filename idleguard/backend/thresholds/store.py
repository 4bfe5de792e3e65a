"""
thresholds/store.py

ThresholdStore — owns the user-adjustable thresholds.

  - Validates edits against each metric's bounds (raises ValueError)
  - Persists to a small JSON file on every change, reloads on start
  - Hands the engine an immutable ThresholdSet once per tick

An unreadable or malformed file is not fatal: the store logs a warning and
starts from defaults, like a fresh install.
"""

from __future__ import annotations

import json
import logging
import os
import threading

from .models import AlertThreshold, ThresholdMetric, ThresholdSet, default_thresholds

logger = logging.getLogger(__name__)


class ThresholdStore:
    """
    Thread-safe threshold holder.

    Args:
        path: JSON file to persist to, or None for an in-memory store.
    """

    def __init__(self, path: str | None = None) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._thresholds: dict[ThresholdMetric, AlertThreshold] = {
            t.metric: t for t in default_thresholds()
        }
        if path is not None:
            self._load()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, metric: ThresholdMetric | str) -> AlertThreshold:
        metric = ThresholdMetric(metric)
        with self._lock:
            return self._thresholds[metric]

    def all(self) -> list[AlertThreshold]:
        with self._lock:
            return [self._thresholds[m] for m in ThresholdMetric]

    def snapshot(self) -> ThresholdSet:
        """Immutable view for one engine tick."""
        return ThresholdSet(self.all())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def update(
        self,
        metric: ThresholdMetric | str,
        value: float | None = None,
        enabled: bool | None = None,
    ) -> AlertThreshold:
        """
        Change a threshold's value and/or enabled flag.

        Raises:
            ValueError: unknown metric, or value outside the metric's bounds.
        """
        metric = ThresholdMetric(metric)
        if value is not None and not metric.in_bounds(float(value)):
            s = metric.info
            raise ValueError(
                f"{metric.value} must be within [{s.min_value:g}, {s.max_value:g}] — got {value}"
            )
        with self._lock:
            updated = self._thresholds[metric].with_changes(value=value, enabled=enabled)
            self._thresholds[metric] = updated
        logger.info(
            "Threshold updated: %s value=%g enabled=%s",
            metric.value, updated.value, updated.enabled,
        )
        self._save()
        return updated

    def reset(self) -> list[AlertThreshold]:
        with self._lock:
            self._thresholds = {t.metric: t for t in default_thresholds()}
        logger.info("Thresholds reset to defaults")
        self._save()
        return self.all()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        if self._path is None:
            return
        if not os.path.exists(self._path):
            logger.debug("No threshold file at %r — using defaults", self._path)
            return
        try:
            with open(self._path, encoding="utf-8") as fh:
                raw = json.load(fh)
            loaded: dict[ThresholdMetric, AlertThreshold] = {}
            for item in raw:
                metric = ThresholdMetric(item["metric"])
                loaded[metric] = AlertThreshold(
                    metric=metric,
                    value=float(item["value"]),
                    enabled=bool(item.get("enabled", True)),
                )
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Could not read thresholds from %r (%s) — using defaults", self._path, exc)
            return
        with self._lock:
            self._thresholds.update(loaded)
        logger.info("Loaded %d threshold(s) from %r", len(loaded), self._path)

    def _save(self) -> None:
        if self._path is None:
            return
        payload = [
            {"metric": t.metric.value, "value": t.value, "enabled": t.enabled}
            for t in self.all()
        ]
        try:
            os.makedirs(os.path.dirname(os.path.abspath(self._path)), exist_ok=True)
            tmp = f"{self._path}.tmp"
            with open(tmp, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2)
            os.replace(tmp, self._path)
        except OSError as exc:
            logger.error("Failed to save thresholds to %r: %s", self._path, exc)
