"""
engine/factors/total_download.py

Bytes downloaded over the trailing hour against the totalDownload limit.
"""

from __future__ import annotations

import logging

from ...thresholds.models import ThresholdMetric
from ..models import FactorResult
from .base import BaseFactor, ScoringContext

logger = logging.getLogger(__name__)


class TotalDownloadFactor(BaseFactor):
    name = "total_download"
    score = 30
    order = 20
    enabled = True

    def evaluate(self, ctx: ScoringContext) -> FactorResult:
        try:
            return self._evaluate(ctx)
        except Exception as exc:
            logger.exception("TotalDownloadFactor.evaluate() raised: %s", exc)
            return FactorResult.quiet("internal error in total_download factor")

    def _evaluate(self, ctx: ScoringContext) -> FactorResult:
        threshold = ctx.thresholds.get(ThresholdMetric.TOTAL_DOWNLOAD)
        if not threshold.enabled:
            return FactorResult.quiet("total download threshold disabled")

        limit_mb = self.limit(threshold)
        total_mb = ctx.totals.download_mb
        if total_mb > limit_mb:
            return self.fired(
                f"Download exceeded {limit_mb:.0f} MB limit ({total_mb:.1f} MB in the last hour)",
                total_download_mb=round(total_mb, 2),
                limit_mb=limit_mb,
            )
        return FactorResult.quiet()
