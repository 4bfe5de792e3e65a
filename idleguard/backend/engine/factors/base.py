"""
engine/factors/base.py

Abstract base class that all scoring factors must implement, plus the
ScoringContext every factor receives.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ...models import MetricSnapshot
from ...thresholds.models import AlertThreshold, ThresholdSet
from ..models import Baseline, FactorResult, RollingTotals


@dataclass(frozen=True, slots=True)
class ScoringContext:
    """Everything a factor may look at for one evaluation. Read-only."""

    snapshot: MetricSnapshot
    baseline: Baseline
    thresholds: ThresholdSet
    totals: RollingTotals
    baseline_multiplier: float = 5.0


class BaseFactor(ABC):
    """
    Contract that every scoring factor must satisfy.

    Class-level attributes:
        name    — unique snake_case identifier used in ThreatFactor.name
        score   — points contributed when the factor fires at full strength
        order   — evaluation / reporting order (lower first)
        enabled — False for factors not yet wired in

    The evaluate() method MUST:
        - Never raise an exception (catch internally, return a quiet result)
        - Never contribute more than `score` points
        - Return only JSON-serializable types in evidence
    """

    name: str = ""
    score: int = 0
    order: int = 100
    enabled: bool = True

    @abstractmethod
    def evaluate(self, ctx: ScoringContext) -> FactorResult:
        """
        Evaluate the factor against a confirmed-idle context.

        Must never raise — catch all exceptions internally.
        """
        ...

    @staticmethod
    def limit(threshold: AlertThreshold) -> float:
        """Threshold value clamped to >= 0; the store may hand us anything."""
        return max(0.0, float(threshold.value))

    def fired(self, reason: str, points: int | None = None, **evidence) -> FactorResult:
        pts = self.score if points is None else min(points, self.score)
        return FactorResult(triggered=True, score=pts, reason=reason, evidence=evidence)

    def __repr__(self) -> str:
        return f"<Factor:{self.name} +{self.score} enabled={self.enabled}>"
