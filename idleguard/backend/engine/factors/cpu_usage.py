"""
engine/factors/cpu_usage.py

CPU usage while idle above the user's cpuUsage threshold.
"""

from __future__ import annotations

import logging

from ...thresholds.models import ThresholdMetric
from ..models import FactorResult
from .base import BaseFactor, ScoringContext

logger = logging.getLogger(__name__)


class CpuUsageFactor(BaseFactor):
    name = "cpu_usage"
    score = 25
    order = 40
    enabled = True

    def evaluate(self, ctx: ScoringContext) -> FactorResult:
        try:
            return self._evaluate(ctx)
        except Exception as exc:
            logger.exception("CpuUsageFactor.evaluate() raised: %s", exc)
            return FactorResult.quiet("internal error in cpu_usage factor")

    def _evaluate(self, ctx: ScoringContext) -> FactorResult:
        threshold = ctx.thresholds.get(ThresholdMetric.CPU_USAGE)
        if not threshold.enabled:
            return FactorResult.quiet("cpu threshold disabled")

        cpu = ctx.snapshot.cpu_percent
        if cpu > self.limit(threshold):
            return self.fired(
                f"High CPU while idle ({cpu:.0f}%)",
                cpu_percent=round(cpu, 1),
                limit_percent=self.limit(threshold),
            )
        return FactorResult.quiet()
