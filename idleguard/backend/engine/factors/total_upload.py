"""
engine/factors/total_upload.py

Bytes uploaded over the trailing hour against the user's totalUpload limit.
Full score above the limit, a smaller "approaching" score above 80% of it.
"""

from __future__ import annotations

import logging

from ...thresholds.models import ThresholdMetric
from ..models import FactorResult
from .base import BaseFactor, ScoringContext

logger = logging.getLogger(__name__)


class TotalUploadFactor(BaseFactor):
    name = "total_upload"
    score = 50
    order = 10
    enabled = True

    approaching_ratio: float = 0.8
    approaching_score: int = 20

    def evaluate(self, ctx: ScoringContext) -> FactorResult:
        try:
            return self._evaluate(ctx)
        except Exception as exc:
            logger.exception("TotalUploadFactor.evaluate() raised: %s", exc)
            return FactorResult.quiet("internal error in total_upload factor")

    def _evaluate(self, ctx: ScoringContext) -> FactorResult:
        threshold = ctx.thresholds.get(ThresholdMetric.TOTAL_UPLOAD)
        if not threshold.enabled:
            return FactorResult.quiet("total upload threshold disabled")

        limit_mb = self.limit(threshold)
        if limit_mb <= 0:
            return FactorResult.quiet("total upload threshold is zero")

        total_mb = ctx.totals.upload_mb
        ratio = total_mb / limit_mb

        if ratio > 1.0:
            return self.fired(
                f"Upload exceeded {limit_mb:.0f} MB limit ({total_mb:.1f} MB in the last hour)",
                total_upload_mb=round(total_mb, 2),
                limit_mb=limit_mb,
            )
        if ratio > self.approaching_ratio:
            return self.fired(
                f"Upload approaching limit ({total_mb:.1f}/{limit_mb:.0f} MB)",
                points=self.approaching_score,
                total_upload_mb=round(total_mb, 2),
                limit_mb=limit_mb,
            )
        return FactorResult.quiet()
