"""
engine/idle.py

IdleDetector — decides whether the device is unattended.

Idle requires BOTH:
  1. no user interaction for at least idle_threshold_seconds, AND
  2. low instantaneous activity: CPU below idle_cpu_threshold OR the busier
     network direction below idle_network_threshold_bps.

A registered interaction is an override: it drops the detector to active
immediately, whatever the metrics say. There is no hysteresis on the
idle → active edge; the interaction floor already debounces active → idle.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class IdleDetector:
    def __init__(
        self,
        idle_threshold_seconds: float = 60.0,
        idle_cpu_threshold: float = 15.0,
        idle_network_threshold_bps: float = 50 * 1024,
        started_at: float = 0.0,
    ) -> None:
        self.idle_threshold_seconds = idle_threshold_seconds
        self.idle_cpu_threshold = idle_cpu_threshold
        self.idle_network_threshold_bps = idle_network_threshold_bps
        self._last_interaction = started_at
        self._is_idle = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def evaluate(
        self,
        now: float,
        last_interaction: float,
        cpu_percent: float,
        upload_bps: float,
        download_bps: float,
    ) -> bool:
        """Re-evaluate and return the idle state for *now*."""
        quiet_long_enough = now - last_interaction >= self.idle_threshold_seconds
        low_activity = (
            cpu_percent < self.idle_cpu_threshold
            or max(upload_bps, download_bps) < self.idle_network_threshold_bps
        )
        idle = quiet_long_enough and low_activity

        if idle and not self._is_idle:
            logger.info(
                "Device entered idle — %.0fs since last interaction, cpu=%.1f%% net=%.0fB/s",
                now - last_interaction, cpu_percent, max(upload_bps, download_bps),
            )
        elif self._is_idle and not idle:
            logger.debug("Device left idle (cpu=%.1f%%)", cpu_percent)

        self._is_idle = idle
        return idle

    def update(self, now: float, cpu_percent: float, upload_bps: float, download_bps: float) -> bool:
        """evaluate() against the detector's own interaction timestamp."""
        return self.evaluate(now, self._last_interaction, cpu_percent, upload_bps, download_bps)

    def register_interaction(self, now: float) -> None:
        """User touched the device: active immediately, timer restarts."""
        if self._is_idle:
            logger.info("User interaction — leaving idle")
        self._last_interaction = now
        self._is_idle = False

    def is_quiet(self, cpu_percent: float, upload_bps: float, download_bps: float) -> bool:
        """Both CPU and network below the idle thresholds (used for baseline learning)."""
        return (
            cpu_percent < self.idle_cpu_threshold
            and max(upload_bps, download_bps) < self.idle_network_threshold_bps
        )

    def idle_duration(self, now: float) -> float:
        """Seconds since the last interaction while idle; 0 when active."""
        if not self._is_idle:
            return 0.0
        return max(0.0, now - self._last_interaction)

    @property
    def is_idle(self) -> bool:
        return self._is_idle

    @property
    def last_interaction(self) -> float:
        return self._last_interaction
