"""
sources/sampler.py

SystemMetricSource — psutil-backed metric source.

Every interval it reads what the host exposes and pushes one partial
MetricSample into the LatestSampleStore:

  network   net_io_counters()        → rates (bytes/s) + cumulative counters
  cpu       cpu_percent()            → percent since the previous call
  battery   sensors_battery()        → level + drain %/h over a short history
  thermal   sensors_temperatures()   → ThermalLevel from the hottest sensor

Anything a platform does not support stays None, which the store treats as
"keep the previous value".
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque

import psutil

from ..aggregation.latest import LatestSampleStore
from ..metrics import METRICS
from ..models import MetricSample, ThermalLevel

logger = logging.getLogger(__name__)

# Drain needs at least this much battery history to be meaningful
_MIN_DRAIN_SPAN_SECONDS = 60.0

# Fallback °C cut-offs when a sensor reports no high / critical marks
_THERMAL_FAIR_C = 70.0
_THERMAL_SERIOUS_C = 85.0
_THERMAL_CRITICAL_C = 95.0


def thermal_level_for(current: float, high: float | None = None, critical: float | None = None) -> ThermalLevel:
    """Classify one temperature reading."""
    crit = critical or _THERMAL_CRITICAL_C
    serious = high or _THERMAL_SERIOUS_C
    if current >= crit:
        return ThermalLevel.CRITICAL
    if current >= serious:
        return ThermalLevel.SERIOUS
    if current >= min(_THERMAL_FAIR_C, serious - 10.0):
        return ThermalLevel.FAIR
    return ThermalLevel.NOMINAL


class SystemMetricSource:
    """
    Args:
        store:                   destination for samples.
        interval:                seconds between samples.
        battery_history_seconds: span of battery readings used for the drain rate.
    """

    def __init__(
        self,
        store: LatestSampleStore,
        interval: float = 1.0,
        battery_history_seconds: float = 300.0,
    ) -> None:
        self._store = store
        self.interval = interval
        self.battery_history_seconds = battery_history_seconds

        self._last_net: tuple[float, float, float] | None = None  # (t, sent, recv)
        self._battery_history: deque[tuple[float, float]] = deque()

        # Prime psutil's CPU delta so the first real reading is not 0.0
        try:
            psutil.cpu_percent(interval=None)
        except Exception as exc:
            logger.debug("cpu_percent priming failed: %s", exc)

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------

    def sample(self, now: float | None = None) -> MetricSample:
        now = time.time() if now is None else now
        sample = MetricSample(timestamp=now)
        self._read_network(sample, now)
        self._read_cpu(sample)
        self._read_battery(sample, now)
        self._read_thermal(sample)
        return sample

    def poll(self, now: float | None = None) -> int:
        """Take one sample and push it into the store. Returns accepted field count."""
        return self._store.update(self.sample(now))

    async def run(self, shutdown_event: asyncio.Event) -> None:
        logger.info("Metric sampler started (interval=%.1fs)", self.interval)
        while not shutdown_event.is_set():
            try:
                self.poll()
            except Exception as exc:
                METRICS.sampler_errors.inc()
                logger.exception("Metric sampler failed: %s", exc)
            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                continue
        logger.info("Metric sampler exiting")

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def _read_network(self, sample: MetricSample, now: float) -> None:
        try:
            counters = psutil.net_io_counters()
        except Exception as exc:
            METRICS.sampler_errors.inc()
            logger.debug("net_io_counters unavailable: %s", exc)
            return
        if counters is None:
            return

        sent, recv = float(counters.bytes_sent), float(counters.bytes_recv)
        sample.cumulative_upload_bytes = sent
        sample.cumulative_download_bytes = recv

        if self._last_net is not None:
            t0, sent0, recv0 = self._last_net
            dt = now - t0
            if dt > 0:
                # Counter reset reads as zero traffic, not a negative rate
                sample.upload_bps = max(0.0, sent - sent0) / dt
                sample.download_bps = max(0.0, recv - recv0) / dt
        self._last_net = (now, sent, recv)

    def _read_cpu(self, sample: MetricSample) -> None:
        try:
            sample.cpu_percent = psutil.cpu_percent(interval=None)
        except Exception as exc:
            METRICS.sampler_errors.inc()
            logger.debug("cpu_percent unavailable: %s", exc)

    def _read_battery(self, sample: MetricSample, now: float) -> None:
        reader = getattr(psutil, "sensors_battery", None)
        if reader is None:
            return
        try:
            battery = reader()
        except Exception as exc:
            METRICS.sampler_errors.inc()
            logger.debug("sensors_battery unavailable: %s", exc)
            return
        if battery is None:
            return

        level = float(battery.percent)
        sample.battery_level_percent = level

        history = self._battery_history
        history.append((now, level))
        while history and history[0][0] < now - self.battery_history_seconds:
            history.popleft()

        if battery.power_plugged:
            sample.battery_drain_per_hour = 0.0
            return

        t0, level0 = history[0]
        span = now - t0
        if span < _MIN_DRAIN_SPAN_SECONDS:
            return
        drain = (level0 - level) / (span / 3600.0)
        sample.battery_drain_per_hour = max(0.0, drain)

    def _read_thermal(self, sample: MetricSample) -> None:
        reader = getattr(psutil, "sensors_temperatures", None)
        if reader is None:
            return
        try:
            sensors = reader()
        except Exception as exc:
            METRICS.sampler_errors.inc()
            logger.debug("sensors_temperatures unavailable: %s", exc)
            return
        if not sensors:
            return

        worst = ThermalLevel.NOMINAL
        for entries in sensors.values():
            for entry in entries:
                if entry.current is None:
                    continue
                level = thermal_level_for(entry.current, entry.high, entry.critical)
                if level > worst:
                    worst = level
        sample.thermal_level = worst
