"""
tests/test_scoring.py

Tests for ThreatScorer and the built-in factors.
Covers idle gating, score bounds, factor discovery and the reference scenarios.
"""

from __future__ import annotations

import pytest

from idleguard.backend.engine.factors.base import BaseFactor, ScoringContext
from idleguard.backend.engine.levels import level_for_score
from idleguard.backend.engine.models import Baseline, FactorResult, RollingTotals
from idleguard.backend.engine.scoring import IDLE_GATED, MAX_SCORE, ThreatScorer
from idleguard.backend.models import MetricSnapshot, ThermalLevel, ThreatLevel
from idleguard.backend.thresholds.models import AlertThreshold, ThresholdMetric, ThresholdSet

MB = 1_000_000


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def snap(**kwargs) -> MetricSnapshot:
    return MetricSnapshot(timestamp=1000.0, **kwargs)


def totals(up_mb: float = 0.0, down_mb: float = 0.0) -> RollingTotals:
    return RollingTotals(upload_bytes=up_mb * MB, download_bytes=down_mb * MB)


def thresholds(**overrides) -> ThresholdSet:
    """overrides: metric value → threshold value (or AlertThreshold)."""
    items = []
    for name, value in overrides.items():
        metric = ThresholdMetric(name)
        if isinstance(value, AlertThreshold):
            items.append(value)
        else:
            items.append(AlertThreshold(metric=metric, value=value))
    return ThresholdSet(items)


WARM = Baseline(upload_bps=1_000.0, download_bps=1_000.0, cpu_percent=2.0, sample_count=30, is_warm=True)
COLD = Baseline()


@pytest.fixture(scope="module")
def scorer() -> ThreatScorer:
    return ThreatScorer()


class _Raising(BaseFactor):
    name = "raising"
    score = 10

    def evaluate(self, ctx: ScoringContext) -> FactorResult:
        raise RuntimeError("boom")


class _Greedy(BaseFactor):
    name = "greedy"
    score = 40

    def evaluate(self, ctx: ScoringContext) -> FactorResult:
        return FactorResult(triggered=True, score=999, reason="wants more than allowed")


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

class TestFactorDiscovery:

    def test_all_builtin_factors_loaded(self, scorer):
        names = [f.name for f in scorer.factors]
        assert names == [
            "total_upload",
            "total_download",
            "upload_rate",
            "cpu_usage",
            "battery_drain",
            "thermal",
            "surveillance_pattern",
        ]

    def test_explicit_factor_list_skips_discovery(self):
        s = ThreatScorer(factors=[_Greedy()])
        assert [f.name for f in s.factors] == ["greedy"]


# ---------------------------------------------------------------------------
# Gating and bounds
# ---------------------------------------------------------------------------

class TestIdleGating:

    def test_active_device_scores_zero(self, scorer):
        """Scenario B: everything exceeded but the user is active."""
        result = scorer.score(
            snap(upload_bps=10 * MB, cpu_percent=99, battery_drain_per_hour=40,
                 thermal_level=ThermalLevel.CRITICAL),
            is_idle=False,
            baseline=WARM,
            thresholds=thresholds(),
            totals=totals(up_mb=5000, down_mb=9000),
        )
        assert result is IDLE_GATED
        assert result.score == 0
        assert result.factors == ()

    def test_active_device_does_not_evaluate_factors(self):
        s = ThreatScorer(factors=[_Raising()])
        assert s.score(snap(), False, WARM, thresholds(), totals()).score == 0

    def test_quiet_idle_device_scores_zero(self, scorer):
        result = scorer.score(snap(cpu_percent=3), True, WARM, thresholds(), totals())
        assert result.score == 0
        assert result.factors == ()


class TestScoreBounds:

    def test_everything_firing_is_capped_at_100(self, scorer):
        result = scorer.score(
            snap(upload_bps=10 * MB, cpu_percent=99, battery_drain_per_hour=40,
                 thermal_level=ThermalLevel.CRITICAL),
            is_idle=True,
            baseline=WARM,
            thresholds=thresholds(),
            totals=totals(up_mb=5000, down_mb=9000),
        )
        assert result.score == MAX_SCORE
        assert len(result.factors) == 7

    def test_factor_points_capped_at_class_score(self):
        s = ThreatScorer(factors=[_Greedy()])
        result = s.score(snap(), True, WARM, thresholds(), totals())
        assert result.score == 40
        assert result.factors[0].score == 40

    def test_raising_factor_is_ignored(self):
        s = ThreatScorer(factors=[_Raising(), _Greedy()])
        result = s.score(snap(), True, WARM, thresholds(), totals())
        assert result.factor_names == ["greedy"]

    def test_negative_threshold_values_are_clamped(self, scorer):
        t = ThresholdSet([AlertThreshold(metric=ThresholdMetric.CPU_USAGE, value=-50)])
        result = scorer.score(snap(cpu_percent=1), True, WARM, t, totals())
        assert "cpu_usage" in result.factor_names
        assert 0 <= result.score <= MAX_SCORE


# ---------------------------------------------------------------------------
# Individual factors
# ---------------------------------------------------------------------------

class TestTotalUpload:

    def test_over_limit_adds_full_score(self, scorer):
        result = scorer.score(snap(), True, WARM, thresholds(total_upload=100), totals(up_mb=120))
        assert result.score == 50
        assert result.factor_names == ["total_upload"]

    def test_approaching_limit_adds_partial_score(self, scorer):
        result = scorer.score(snap(), True, WARM, thresholds(total_upload=100), totals(up_mb=85))
        assert result.score == 20

    def test_zero_limit_never_divides(self, scorer):
        t = ThresholdSet([AlertThreshold(metric=ThresholdMetric.TOTAL_UPLOAD, value=0)])
        result = scorer.score(snap(), True, WARM, t, totals(up_mb=1))
        assert "total_upload" not in result.factor_names

    def test_disabled_threshold_does_not_fire(self, scorer):
        off = AlertThreshold(metric=ThresholdMetric.TOTAL_UPLOAD, value=100, enabled=False)
        result = scorer.score(snap(), True, WARM, ThresholdSet([off]), totals(up_mb=500))
        assert "total_upload" not in result.factor_names


class TestUploadRate:

    def test_needs_warm_baseline(self, scorer):
        fast = snap(upload_bps=100_000)  # 360 MB/h
        assert "upload_rate" not in scorer.score(fast, True, COLD, thresholds(), totals()).factor_names
        assert "upload_rate" in scorer.score(fast, True, WARM, thresholds(), totals()).factor_names

    def test_needs_multiple_of_baseline(self, scorer):
        busy_baseline = Baseline(upload_bps=50_000, sample_count=30, is_warm=True)
        result = scorer.score(snap(upload_bps=100_000), True, busy_baseline, thresholds(), totals())
        assert "upload_rate" not in result.factor_names


class TestOtherFactors:

    def test_cpu_over_threshold(self, scorer):
        result = scorer.score(snap(cpu_percent=75), True, WARM, thresholds(), totals())
        assert result.factor_names == ["cpu_usage"]
        assert result.score == 25

    def test_battery_drain_over_threshold(self, scorer):
        result = scorer.score(snap(battery_drain_per_hour=12), True, WARM, thresholds(), totals())
        assert result.factor_names == ["battery_drain"]
        assert result.score == 20

    def test_total_download_over_threshold(self, scorer):
        result = scorer.score(snap(), True, WARM, thresholds(), totals(down_mb=600))
        assert result.factor_names == ["total_download"]
        assert result.score == 30

    @pytest.mark.parametrize("level, fires", [
        (ThermalLevel.NOMINAL, False),
        (ThermalLevel.FAIR, False),
        (ThermalLevel.SERIOUS, True),
        (ThermalLevel.CRITICAL, True),
    ])
    def test_thermal(self, scorer, level, fires):
        result = scorer.score(snap(thermal_level=level), True, WARM, thresholds(), totals())
        assert ("thermal" in result.factor_names) is fires


# ---------------------------------------------------------------------------
# Reference scenarios
# ---------------------------------------------------------------------------

class TestScenarios:

    def test_scenario_a_hourly_upload_over_limit(self, scorer):
        result = scorer.score(
            snap(cpu_percent=5), True, WARM, thresholds(total_upload=100), totals(up_mb=120),
        )
        assert "total_upload" in result.factor_names
        assert result.score >= 50
        assert level_for_score(result.score) == ThreatLevel.ALERT

    def test_scenario_c_surveillance_composite(self, scorer):
        result = scorer.score(
            snap(cpu_percent=22, battery_drain_per_hour=3.1),
            True, WARM, thresholds(), totals(up_mb=30.5),
        )
        assert result.factor_names == ["surveillance_pattern"]
        assert result.score == 20
        assert level_for_score(result.score) == ThreatLevel.WARNING

    def test_top_factor_is_highest_contributor(self, scorer):
        result = scorer.score(
            snap(cpu_percent=75), True, WARM, thresholds(total_upload=100), totals(up_mb=120),
        )
        assert result.top_factor().name == "total_upload"
