"""
tests/test_aggregation.py

Tests for RollingWindowTotal and LatestSampleStore.
"""

from __future__ import annotations

import math

import pytest

from idleguard.backend.aggregation.latest import LatestSampleStore
from idleguard.backend.aggregation.rolling_window import RollingWindowTotal
from idleguard.backend.metrics import METRICS
from idleguard.backend.models import MetricSample, ThermalLevel


@pytest.fixture(autouse=True)
def _reset_metrics():
    METRICS.reset_all()
    yield


# ---------------------------------------------------------------------------
# RollingWindowTotal
# ---------------------------------------------------------------------------

class TestRollingWindowTotal:

    def test_rejects_non_positive_window(self):
        with pytest.raises(ValueError):
            RollingWindowTotal(window_seconds=0)

    def test_first_sample_is_reference_only(self):
        w = RollingWindowTotal(window_seconds=3600)
        w.add(0.0, 5_000, 9_000)
        assert w.upload_bytes() == 0.0
        assert w.download_bytes() == 0.0

    def test_accumulates_deltas(self):
        w = RollingWindowTotal(window_seconds=3600)
        w.add(0.0, 1_000, 2_000)
        w.add(10.0, 1_500, 2_100)
        w.add(20.0, 2_500, 2_600)
        assert w.upload_bytes() == 1_500
        assert w.download_bytes() == 600
        assert len(w) == 2

    def test_counter_reset_contributes_zero(self):
        w = RollingWindowTotal(window_seconds=3600)
        w.add(0.0, 10_000, 10_000)
        w.add(10.0, 500, 500)          # interface reset
        assert w.upload_bytes() == 0.0
        w.add(20.0, 1_500, 700)
        assert w.upload_bytes() == 1_000
        assert w.download_bytes() == 200

    def test_entries_evicted_after_window(self):
        w = RollingWindowTotal(window_seconds=60)
        w.add(0.0, 0, 0)
        w.add(10.0, 1_000, 0)
        w.add(50.0, 3_000, 0)
        assert w.upload_bytes(now=60.0) == 3_000
        assert w.upload_bytes(now=70.0) == 2_000
        assert w.upload_bytes(now=110.0) == 0.0
        assert len(w) == 0

    def test_non_decreasing_inside_window(self):
        w = RollingWindowTotal(window_seconds=3600)
        w.add(0.0, 0, 0)
        seen = []
        for i in range(1, 20):
            w.add(float(i), i * 100, 0)
            seen.append(w.upload_bytes(now=float(i)))
        assert seen == sorted(seen)


# ---------------------------------------------------------------------------
# LatestSampleStore
# ---------------------------------------------------------------------------

class TestLatestSampleStore:

    def test_defaults_before_any_sample(self):
        store = LatestSampleStore()
        s = store.snapshot(now=5.0)
        assert s.timestamp == 5.0
        assert s.cpu_percent == 0.0
        assert s.battery_level_percent == 100.0
        assert s.thermal_level == ThermalLevel.NOMINAL
        assert store.last_update is None

    def test_partial_update_keeps_previous_values(self):
        store = LatestSampleStore()
        store.update(MetricSample(timestamp=1.0, cpu_percent=30, upload_bps=500))
        store.update(MetricSample(timestamp=2.0, cpu_percent=40))
        s = store.snapshot(now=3.0)
        assert s.cpu_percent == 40
        assert s.upload_bps == 500
        assert store.last_update == 2.0

    def test_invalid_values_are_ignored(self):
        store = LatestSampleStore()
        store.update(MetricSample(cpu_percent=30))
        accepted = store.update(MetricSample(cpu_percent=math.nan, upload_bps="fast", download_bps=True))
        assert accepted == 0
        assert store.snapshot(0).cpu_percent == 30
        assert METRICS.sample_fields_rejected.value == 3

    def test_out_of_range_values_are_clamped(self):
        store = LatestSampleStore()
        store.update(MetricSample(cpu_percent=180, upload_bps=-5, battery_level_percent=-1))
        s = store.snapshot(0)
        assert s.cpu_percent == 100
        assert s.upload_bps == 0
        assert s.battery_level_percent == 0

    def test_negative_drain_passes_through(self):
        store = LatestSampleStore()
        store.update(MetricSample(battery_drain_per_hour=-12.5))
        assert store.snapshot(0).battery_drain_per_hour == -12.5

    @pytest.mark.parametrize("raw, expected", [
        (2, ThermalLevel.SERIOUS),
        (9, ThermalLevel.CRITICAL),
        (-3, ThermalLevel.NOMINAL),
        ("fair", ThermalLevel.FAIR),
    ])
    def test_thermal_coercion(self, raw, expected):
        store = LatestSampleStore()
        store.update(MetricSample(thermal_level=raw))
        assert store.snapshot(0).thermal_level == expected

    def test_unknown_thermal_name_is_rejected(self):
        store = LatestSampleStore()
        store.update(MetricSample(thermal_level="scorching"))
        assert store.snapshot(0).thermal_level == ThermalLevel.NOMINAL
        assert METRICS.sample_fields_rejected.value == 1

    def test_has_counters_needs_both_directions(self):
        store = LatestSampleStore()
        assert not store.has_counters
        store.update(MetricSample(cpu_percent=3, upload_bps=10))
        assert not store.has_counters
        store.update(MetricSample(cumulative_upload_bytes=100))
        assert not store.has_counters
        store.update(MetricSample(cumulative_download_bytes=0))
        assert store.has_counters

    def test_counts_samples(self):
        store = LatestSampleStore()
        store.update(MetricSample(cpu_percent=1))
        store.update(MetricSample(cpu_percent=2))
        assert METRICS.samples_received.value == 2
