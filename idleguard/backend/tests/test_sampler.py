"""
tests/test_sampler.py

Tests for the psutil-backed SystemMetricSource. psutil is patched out so
the readings are deterministic on any host.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from idleguard.backend.aggregation.latest import LatestSampleStore
from idleguard.backend.metrics import METRICS
from idleguard.backend.models import ThermalLevel
from idleguard.backend.sources.sampler import SystemMetricSource, thermal_level_for


@pytest.fixture(autouse=True)
def reset_metrics():
    METRICS.reset_all()
    yield
    METRICS.reset_all()


@pytest.fixture
def fake_psutil():
    fake = MagicMock()
    fake.cpu_percent.return_value = 12.5
    fake.net_io_counters.return_value = SimpleNamespace(bytes_sent=1_000, bytes_recv=5_000)
    fake.sensors_battery.return_value = None
    fake.sensors_temperatures.return_value = {}
    with patch("idleguard.backend.sources.sampler.psutil", fake):
        yield fake


def temp(current, high=None, critical=None):
    return SimpleNamespace(label="", current=current, high=high, critical=critical)


# ---------------------------------------------------------------------------
# Thermal classification
# ---------------------------------------------------------------------------

class TestThermalLevel:

    @pytest.mark.parametrize("current, expected", [
        (40.0, ThermalLevel.NOMINAL),
        (70.0, ThermalLevel.FAIR),
        (85.0, ThermalLevel.SERIOUS),
        (95.0, ThermalLevel.CRITICAL),
    ])
    def test_default_cutoffs(self, current, expected):
        assert thermal_level_for(current) == expected

    def test_sensor_marks_take_precedence(self):
        assert thermal_level_for(72.0, high=75.0, critical=80.0) == ThermalLevel.FAIR
        assert thermal_level_for(76.0, high=75.0, critical=80.0) == ThermalLevel.SERIOUS
        assert thermal_level_for(80.0, high=75.0, critical=80.0) == ThermalLevel.CRITICAL

    def test_low_high_mark_lowers_fair(self):
        assert thermal_level_for(51.0, high=60.0) == ThermalLevel.FAIR


# ---------------------------------------------------------------------------
# Sampling
# ---------------------------------------------------------------------------

class TestSample:

    def test_first_sample_has_counters_but_no_rates(self, fake_psutil):
        source = SystemMetricSource(LatestSampleStore())
        s = source.sample(now=100.0)
        assert s.cumulative_upload_bytes == 1_000
        assert s.cumulative_download_bytes == 5_000
        assert s.upload_bps is None
        assert s.cpu_percent == 12.5

    def test_rates_from_counter_delta(self, fake_psutil):
        source = SystemMetricSource(LatestSampleStore())
        source.sample(now=100.0)
        fake_psutil.net_io_counters.return_value = SimpleNamespace(bytes_sent=3_000, bytes_recv=6_000)
        s = source.sample(now=102.0)
        assert s.upload_bps == pytest.approx(1_000.0)
        assert s.download_bps == pytest.approx(500.0)

    def test_counter_reset_gives_zero_rate(self, fake_psutil):
        source = SystemMetricSource(LatestSampleStore())
        source.sample(now=100.0)
        fake_psutil.net_io_counters.return_value = SimpleNamespace(bytes_sent=10, bytes_recv=10)
        s = source.sample(now=101.0)
        assert s.upload_bps == 0.0
        assert s.download_bps == 0.0

    def test_network_failure_counted(self, fake_psutil):
        fake_psutil.net_io_counters.side_effect = OSError("no interfaces")
        s = SystemMetricSource(LatestSampleStore()).sample(now=1.0)
        assert s.cumulative_upload_bytes is None
        assert s.cpu_percent == 12.5
        assert METRICS.sampler_errors.value == 1

    def test_worst_thermal_sensor_wins(self, fake_psutil):
        fake_psutil.sensors_temperatures.return_value = {
            "acpitz":   [temp(45.0)],
            "coretemp": [temp(50.0), temp(88.0, high=100.0, critical=100.0), temp(None)],
        }
        s = SystemMetricSource(LatestSampleStore()).sample(now=1.0)
        assert s.thermal_level == ThermalLevel.FAIR

    def test_missing_sensor_api_leaves_fields_unset(self, fake_psutil):
        del fake_psutil.sensors_battery
        del fake_psutil.sensors_temperatures
        s = SystemMetricSource(LatestSampleStore()).sample(now=1.0)
        assert s.battery_level_percent is None
        assert s.thermal_level is None


class TestBatteryDrain:

    def battery(self, fake, percent, plugged=False):
        fake.sensors_battery.return_value = SimpleNamespace(percent=percent, power_plugged=plugged, secsleft=0)

    def test_drain_needs_a_minute_of_history(self, fake_psutil):
        source = SystemMetricSource(LatestSampleStore())
        self.battery(fake_psutil, 90.0)
        source.sample(now=0.0)
        self.battery(fake_psutil, 89.9)
        s = source.sample(now=30.0)
        assert s.battery_level_percent == 89.9
        assert s.battery_drain_per_hour is None

    def test_drain_percent_per_hour(self, fake_psutil):
        source = SystemMetricSource(LatestSampleStore())
        self.battery(fake_psutil, 90.0)
        source.sample(now=0.0)
        self.battery(fake_psutil, 89.0)
        s = source.sample(now=300.0)
        assert s.battery_drain_per_hour == pytest.approx(12.0)

    def test_plugged_in_reports_zero(self, fake_psutil):
        source = SystemMetricSource(LatestSampleStore())
        self.battery(fake_psutil, 50.0, plugged=True)
        source.sample(now=0.0)
        assert source.sample(now=300.0).battery_drain_per_hour == 0.0

    def test_charging_never_negative(self, fake_psutil):
        source = SystemMetricSource(LatestSampleStore())
        self.battery(fake_psutil, 50.0)
        source.sample(now=0.0)
        self.battery(fake_psutil, 55.0)
        assert source.sample(now=120.0).battery_drain_per_hour == 0.0


class TestPoll:

    def test_poll_pushes_into_store(self, fake_psutil):
        store = LatestSampleStore()
        source = SystemMetricSource(store)
        assert source.poll(now=5.0) > 0
        snap = store.snapshot(5.0)
        assert snap.cpu_percent == 12.5
        assert snap.cumulative_download_bytes == 5_000
