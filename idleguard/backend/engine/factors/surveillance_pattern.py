"""
engine/factors/surveillance_pattern.py

Composite "possible screen-mirroring / surveillance" signature.

Any one of moderate hourly upload, moderate CPU or moderate battery drain is
innocuous on its own; all three together while idle are a stronger signal
than any single factor. The cut-offs are fixed and deliberately independent
of the user thresholds.

TODO: derive the three cut-offs from the threshold store once users can
tune the composite signature.
"""

from __future__ import annotations

import logging

from ..models import FactorResult
from .base import BaseFactor, ScoringContext

logger = logging.getLogger(__name__)


class SurveillancePatternFactor(BaseFactor):
    name = "surveillance_pattern"
    score = 20
    order = 70
    enabled = True

    min_upload_mb: float = 30.0
    min_cpu_percent: float = 20.0
    min_drain_per_hour: float = 3.0

    def evaluate(self, ctx: ScoringContext) -> FactorResult:
        try:
            return self._evaluate(ctx)
        except Exception as exc:
            logger.exception("SurveillancePatternFactor.evaluate() raised: %s", exc)
            return FactorResult.quiet("internal error in surveillance_pattern factor")

    def _evaluate(self, ctx: ScoringContext) -> FactorResult:
        upload_mb = ctx.totals.upload_mb
        cpu = ctx.snapshot.cpu_percent
        drain = ctx.snapshot.battery_drain_per_hour

        if (
            upload_mb > self.min_upload_mb
            and cpu > self.min_cpu_percent
            and drain > self.min_drain_per_hour
        ):
            return self.fired(
                f"Possible screen mirroring: {upload_mb:.1f} MB up, "
                f"{cpu:.0f}% CPU, {drain:.1f}%/h drain while idle",
                total_upload_mb=round(upload_mb, 2),
                cpu_percent=round(cpu, 1),
                drain_per_hour=round(drain, 2),
            )
        return FactorResult.quiet()
