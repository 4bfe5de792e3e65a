"""
engine/factors/upload_rate.py

Sustained upload rate, expressed as an hourly equivalent (MB/h).

Fires only when the rate exceeds BOTH the user's uploadRate threshold AND
baseline_multiplier x the learned idle baseline. A device whose quiet idle
upload is naturally high does not trip on the absolute threshold alone.
While the baseline is still in cold start the factor stays quiet.
"""

from __future__ import annotations

import logging

from ...thresholds.models import ThresholdMetric
from ..models import BYTES_PER_MB, FactorResult
from .base import BaseFactor, ScoringContext

logger = logging.getLogger(__name__)


class UploadRateFactor(BaseFactor):
    name = "upload_rate"
    score = 25
    order = 30
    enabled = True

    def evaluate(self, ctx: ScoringContext) -> FactorResult:
        try:
            return self._evaluate(ctx)
        except Exception as exc:
            logger.exception("UploadRateFactor.evaluate() raised: %s", exc)
            return FactorResult.quiet("internal error in upload_rate factor")

    def _evaluate(self, ctx: ScoringContext) -> FactorResult:
        threshold = ctx.thresholds.get(ThresholdMetric.UPLOAD_RATE)
        if not threshold.enabled:
            return FactorResult.quiet("upload rate threshold disabled")
        if not ctx.baseline.is_warm:
            return FactorResult.quiet("baseline still learning")

        rate_bps = ctx.snapshot.upload_bps
        rate_mbh = rate_bps * 3600 / BYTES_PER_MB
        limit_mbh = self.limit(threshold)
        baseline_limit_bps = max(0.0, ctx.baseline_multiplier) * ctx.baseline.upload_bps

        if rate_mbh > limit_mbh and rate_bps > baseline_limit_bps:
            return self.fired(
                f"Sustained upload {rate_mbh:.0f} MB/h "
                f"({rate_bps / max(ctx.baseline.upload_bps, 1.0):.1f}x idle baseline)",
                upload_rate_mbh=round(rate_mbh, 2),
                limit_mbh=limit_mbh,
                baseline_upload_bps=round(ctx.baseline.upload_bps, 2),
            )
        return FactorResult.quiet()
