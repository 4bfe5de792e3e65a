"""
engine/factors/thermal.py

Thermal state Serious or Critical. Not user-configurable.
"""

from __future__ import annotations

from ...models import ThermalLevel
from ..models import FactorResult
from .base import BaseFactor, ScoringContext


class ThermalFactor(BaseFactor):
    name = "thermal"
    score = 20
    order = 60
    enabled = True

    min_level: ThermalLevel = ThermalLevel.SERIOUS

    def evaluate(self, ctx: ScoringContext) -> FactorResult:
        level = ctx.snapshot.thermal_level
        if level >= self.min_level:
            return self.fired(f"{level.name.title()} thermal state", thermal_level=level.name)
        return FactorResult.quiet()
