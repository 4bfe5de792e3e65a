"""
engine/baseline.py

BaselineLearner — per-device estimate of "normal" quiet-idle activity.

Cold start (first N samples): plain running mean, so the estimate does not
start from an arbitrary zero. Warm phase: exponential moving average with
smoothing factor alpha, letting the baseline drift with long-term usage
without being dominated by a single spike.

The caller is responsible for only feeding quiet-idle samples. Nothing
resets the learner except constructing a new one (process restart).
"""

from __future__ import annotations

import logging

from .models import Baseline

logger = logging.getLogger(__name__)


class BaselineLearner:
    def __init__(self, cold_start_samples: int = 30, alpha: float = 0.1) -> None:
        if cold_start_samples < 1:
            raise ValueError(f"cold_start_samples must be >= 1 — got {cold_start_samples}")
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1] — got {alpha}")
        self.cold_start_samples = cold_start_samples
        self.alpha = alpha
        self._upload = 0.0
        self._download = 0.0
        self._cpu = 0.0
        self._count = 0

    def observe(self, upload_bps: float, download_bps: float, cpu_percent: float) -> None:
        """Fold one quiet-idle sample into the baseline."""
        if self._count < self.cold_start_samples:
            n = self._count
            self._upload = (self._upload * n + upload_bps) / (n + 1)
            self._download = (self._download * n + download_bps) / (n + 1)
            self._cpu = (self._cpu * n + cpu_percent) / (n + 1)
        else:
            a = self.alpha
            self._upload = a * upload_bps + (1 - a) * self._upload
            self._download = a * download_bps + (1 - a) * self._download
            self._cpu = a * cpu_percent + (1 - a) * self._cpu

        self._count += 1
        if self._count == self.cold_start_samples:
            logger.info(
                "Baseline warm after %d samples — up=%.0fB/s down=%.0fB/s cpu=%.1f%%",
                self._count, self._upload, self._download, self._cpu,
            )

    def snapshot(self) -> Baseline:
        return Baseline(
            upload_bps=self._upload,
            download_bps=self._download,
            cpu_percent=self._cpu,
            sample_count=self._count,
            is_warm=self.is_warm,
        )

    @property
    def is_warm(self) -> bool:
        return self._count >= self.cold_start_samples

    @property
    def sample_count(self) -> int:
        return self._count
