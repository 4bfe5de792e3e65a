"""
engine/scoring.py

ThreatScorer — idle-gated, multi-factor weighted score.

score = min(100, sum of triggered factor scores), computed only while the
device is confirmed idle. While active the scorer returns (0, ()) without
evaluating a single factor.

Factors are discovered from the engine.factors package: every BaseFactor
subclass defined in a module there (except base) is instantiated once and
evaluated in ascending `order`.
"""

from __future__ import annotations

import importlib
import inspect
import logging
import pkgutil
import time

from ..models import MetricSnapshot
from ..thresholds.models import ThresholdSet
from .factors.base import BaseFactor, ScoringContext
from .models import Baseline, FactorResult, RollingTotals, ScoreResult, ThreatFactor

logger = logging.getLogger(__name__)

_FACTOR_TIMEOUT_MS = 5.0

MAX_SCORE = 100

IDLE_GATED = ScoreResult(score=0, factors=())


class ThreatScorer:
    def __init__(
        self,
        factors: list[BaseFactor] | None = None,
        baseline_multiplier: float = 5.0,
    ) -> None:
        self.baseline_multiplier = baseline_multiplier
        self.factors: list[BaseFactor] = (
            factors if factors is not None else self._load_factors()
        )
        logger.info(
            "ThreatScorer loaded %d factor(s): %s",
            len(self.factors), [f.name for f in self.factors],
        )

    def score(
        self,
        snapshot: MetricSnapshot,
        is_idle: bool,
        baseline: Baseline,
        thresholds: ThresholdSet,
        totals: RollingTotals,
    ) -> ScoreResult:
        """Pure evaluation; no engine state is touched."""
        if not is_idle:
            return IDLE_GATED

        ctx = ScoringContext(
            snapshot=snapshot,
            baseline=baseline,
            thresholds=thresholds,
            totals=totals,
            baseline_multiplier=self.baseline_multiplier,
        )

        triggered: list[ThreatFactor] = []
        total = 0
        for factor in self.factors:
            result = self._safe_evaluate(factor, ctx)
            if not result.triggered:
                continue
            points = max(0, min(int(result.score), factor.score))
            if points == 0:
                continue
            triggered.append(ThreatFactor(name=factor.name, score=points, reason=result.reason))
            total += points

        return ScoreResult(score=max(0, min(MAX_SCORE, total)), factors=tuple(triggered))

    def _safe_evaluate(self, factor: BaseFactor, ctx: ScoringContext) -> FactorResult:
        t0 = time.monotonic()
        try:
            result = factor.evaluate(ctx)
        except Exception as exc:
            logger.exception("Factor %r raised an unhandled exception: %s", factor.name, exc)
            result = FactorResult.quiet(f"factor error: {exc}")
        elapsed_ms = (time.monotonic() - t0) * 1000
        if elapsed_ms > _FACTOR_TIMEOUT_MS:
            logger.warning("Factor %r took %.1fms", factor.name, elapsed_ms)
        return result

    def _load_factors(self) -> list[BaseFactor]:
        from . import factors as factors_pkg
        factors: list[BaseFactor] = []
        for _, module_name, _ in pkgutil.iter_modules(factors_pkg.__path__):
            if module_name == "base":
                continue
            try:
                module = importlib.import_module(f"{factors_pkg.__name__}.{module_name}")
            except Exception as exc:
                logger.error("Failed to import factor module %r: %s", module_name, exc)
                continue
            for _, obj in inspect.getmembers(module, inspect.isclass):
                if (
                    issubclass(obj, BaseFactor)
                    and obj is not BaseFactor
                    and obj.__module__ == module.__name__
                ):
                    try:
                        instance: BaseFactor = obj()
                        if instance.enabled:
                            factors.append(instance)
                    except Exception as exc:
                        logger.error("Failed to instantiate factor %r: %s", obj, exc)
        factors.sort(key=lambda f: (f.order, f.name))
        return factors
