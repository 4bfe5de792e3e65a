"""
aggregation/rolling_window.py

RollingWindowTotal — bytes transferred within a trailing time window,
derived from the cumulative interface counters supplied by the metric source.

Design:
  - Stores per-step *deltas* (not raw counters) so a counter that goes
    backwards (interface reset, reboot) contributes zero for that step
    instead of a huge negative or wrapped value
  - Running sums are updated in place; eviction subtracts the evicted delta
  - Totals are monotonically non-decreasing while samples stay in the window
    and only shrink by eviction, never by zeroing

Thread safety: NOT thread-safe. Mutated only from ThreatEngine.tick().
"""

from __future__ import annotations

import logging
from collections import deque

logger = logging.getLogger(__name__)


class RollingWindowTotal:
    """
    Trailing-window upload/download totals.

    Args:
        window_seconds: Length of the trailing window (default 1 hour).
    """

    def __init__(self, window_seconds: float = 3600.0) -> None:
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive — got {window_seconds}")
        self._window = float(window_seconds)
        # (timestamp, upload_delta, download_delta)
        self._steps: deque[tuple[float, float, float]] = deque()
        self._last_counters: tuple[float, float] | None = None
        self._upload_total = 0.0
        self._download_total = 0.0
        logger.debug("RollingWindowTotal initialised — window=%.0fs", window_seconds)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def add(self, now: float, cumulative_upload: float, cumulative_download: float) -> None:
        """
        Record the latest cumulative counters observed at *now*.

        The first call only establishes the reference point.
        """
        if self._last_counters is not None:
            prev_up, prev_down = self._last_counters
            up_delta = max(0.0, cumulative_upload - prev_up)
            down_delta = max(0.0, cumulative_download - prev_down)
            if cumulative_upload < prev_up or cumulative_download < prev_down:
                logger.info(
                    "Interface counters went backwards (up %.0f→%.0f down %.0f→%.0f) — "
                    "treating as reset",
                    prev_up, cumulative_upload, prev_down, cumulative_download,
                )
            if up_delta or down_delta:
                self._steps.append((now, up_delta, down_delta))
                self._upload_total += up_delta
                self._download_total += down_delta
        self._last_counters = (cumulative_upload, cumulative_download)
        self._evict(now)

    def upload_bytes(self, now: float | None = None) -> float:
        if now is not None:
            self._evict(now)
        return self._upload_total

    def download_bytes(self, now: float | None = None) -> float:
        if now is not None:
            self._evict(now)
        return self._download_total

    @property
    def window_seconds(self) -> float:
        return self._window

    def __len__(self) -> int:
        return len(self._steps)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _evict(self, now: float) -> None:
        cutoff = now - self._window
        while self._steps and self._steps[0][0] <= cutoff:
            _, up, down = self._steps.popleft()
            self._upload_total -= up
            self._download_total -= down
        if not self._steps:
            # Float drift can leave tiny residues after many add/subtract pairs.
            self._upload_total = 0.0
            self._download_total = 0.0
