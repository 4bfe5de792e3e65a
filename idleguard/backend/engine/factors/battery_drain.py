"""
engine/factors/battery_drain.py

Battery drain rate (%/h) above the user's batteryDrain threshold.
"""

from __future__ import annotations

import logging

from ...thresholds.models import ThresholdMetric
from ..models import FactorResult
from .base import BaseFactor, ScoringContext

logger = logging.getLogger(__name__)


class BatteryDrainFactor(BaseFactor):
    name = "battery_drain"
    score = 20
    order = 50
    enabled = True

    def evaluate(self, ctx: ScoringContext) -> FactorResult:
        try:
            return self._evaluate(ctx)
        except Exception as exc:
            logger.exception("BatteryDrainFactor.evaluate() raised: %s", exc)
            return FactorResult.quiet("internal error in battery_drain factor")

    def _evaluate(self, ctx: ScoringContext) -> FactorResult:
        threshold = ctx.thresholds.get(ThresholdMetric.BATTERY_DRAIN)
        if not threshold.enabled:
            return FactorResult.quiet("battery drain threshold disabled")

        drain = ctx.snapshot.battery_drain_per_hour
        if drain > self.limit(threshold):
            return self.fired(
                f"Fast battery drain ({drain:.1f}%/h)",
                drain_per_hour=round(drain, 2),
                limit_per_hour=self.limit(threshold),
            )
        return FactorResult.quiet()
