"""
tests/test_api.py

FastAPI route tests using TestClient (synchronous).
Injects an in-memory IncidentRepository, a real ThreatEngine and a
non-persistent ThresholdStore, so no files or sockets are touched.
"""

from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient

from idleguard.backend.aggregation.latest import LatestSampleStore
from idleguard.backend.alerts.models import Incident, IncidentSeverity, IncidentType
from idleguard.backend.api.main import (
    create_app,
    set_engine,
    set_pipeline_stats,
    set_repository,
    set_threshold_store,
)
from idleguard.backend.engine.engine import ThreatEngine
from idleguard.backend.models import MetricSample
from idleguard.backend.sessions.models import MonitoringSession
from idleguard.backend.storage.database import Database
from idleguard.backend.storage.migrations import apply_migrations
from idleguard.backend.storage.repository import IncidentRepository
from idleguard.backend.thresholds import ThresholdStore


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

class Harness:
    def __init__(self) -> None:
        self.db = Database(":memory:")
        self.db.init_schema()
        apply_migrations(self.db)
        self.repo = IncidentRepository(self.db)
        self.samples = LatestSampleStore()
        self.thresholds = ThresholdStore()
        self.engine = ThreatEngine(self.samples, self.thresholds)


@pytest.fixture
def harness():
    h = Harness()
    set_repository(h.repo)
    set_engine(h.engine)
    set_threshold_store(h.thresholds)
    set_pipeline_stats({"sampler": {"samples_received": 0}})
    yield h
    h.db.close()


@pytest.fixture
def client(harness):
    with TestClient(create_app()) as c:
        yield c


def seed_incident(repo: IncidentRepository, **kwargs) -> Incident:
    inc = Incident(
        type=kwargs.get("type", IncidentType.DATA_EXFILTRATION),
        severity=kwargs.get("severity", IncidentSeverity.HIGH),
        opened_at=kwargs.get("opened_at", time.time()),
        threat_score=50,
        summary="Suspicious Data Upload",
        factors=["total_upload"],
    )
    repo.save_incident(inc.to_dict())
    return inc


def raise_live_incident(h: Harness) -> Incident:
    """Drive the engine into an open data-exfiltration incident."""
    h.engine.start(0.0)
    h.samples.update(MetricSample(timestamp=0.0, cumulative_upload_bytes=0, cumulative_download_bytes=0))
    h.engine.tick(0.0)
    h.samples.update(MetricSample(timestamp=61.0, cumulative_upload_bytes=300e6))
    h.engine.tick(61.0)
    return h.engine.open_incidents()[0]


# ---------------------------------------------------------------------------
# Health + status
# ---------------------------------------------------------------------------

def test_health(client, harness):
    harness.engine.start(0.0)
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["monitoring"] is True


class TestStatus:

    def test_status_before_first_tick(self, client):
        resp = client.get("/api/status")
        assert resp.status_code == 200
        body = resp.json()
        assert body["score"] == 0
        assert body["level"] == "NORMAL"
        assert body["factors"] == []

    def test_status_after_tick(self, client, harness):
        raise_live_incident(harness)
        body = client.get("/api/status").json()
        assert body["level"] == "ALERT"
        assert body["is_idle"] is True
        assert [f["name"] for f in body["factors"]] == ["total_upload"]
        assert body["snapshot"]["threat_score"] == body["score"]

    def test_activity_newest_first(self, client, harness):
        harness.engine.start(0.0)
        harness.engine.stop(5.0)
        body = client.get("/api/activity").json()
        assert [e["type"] for e in body] == ["monitoring_stopped", "monitoring_started"]
        assert len(client.get("/api/activity?limit=1").json()) == 1

    def test_activity_limit_capped(self, client):
        assert client.get("/api/activity?limit=51").status_code == 422

    def test_interaction_leaves_idle(self, client, harness):
        harness.engine.start(0.0)
        assert harness.engine.tick(61.0).is_idle
        resp = client.post("/api/interaction")
        assert resp.status_code == 200
        assert resp.json()["is_idle"] is False
        assert harness.engine.tick(time.time()).is_idle is False

    def test_stats(self, client, harness):
        seed_incident(harness.repo)
        body = client.get("/api/stats").json()
        assert body["total_incidents"] == 1
        assert body["open_incidents"] == 1
        assert "engine" in body["engine_stats"]
        assert "sampler" in body["engine_stats"]


# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------

class TestThresholds:

    def test_list_all_six(self, client):
        body = client.get("/api/thresholds").json()
        assert [t["metric"] for t in body] == [
            "upload_rate", "download_rate", "cpu_usage",
            "battery_drain", "total_upload", "total_download",
        ]
        cpu = body[2]
        assert (cpu["value"], cpu["min_value"], cpu["max_value"]) == (60, 10, 95)

    def test_update_value(self, client, harness):
        resp = client.put("/api/thresholds", json={"metric": "cpu_usage", "value": 80})
        assert resp.status_code == 200
        assert resp.json()["value"] == 80
        assert harness.thresholds.get("cpu_usage").value == 80

    def test_disable(self, client, harness):
        resp = client.put("/api/thresholds", json={"metric": "battery_drain", "enabled": False})
        assert resp.json()["enabled"] is False
        assert resp.json()["value"] == 8

    def test_out_of_bounds_is_422(self, client, harness):
        resp = client.put("/api/thresholds", json={"metric": "cpu_usage", "value": 99})
        assert resp.status_code == 422
        assert harness.thresholds.get("cpu_usage").value == 60

    def test_unknown_metric_is_422(self, client):
        resp = client.put("/api/thresholds", json={"metric": "fan_speed", "value": 10})
        assert resp.status_code == 422

    def test_reset(self, client, harness):
        harness.thresholds.update("total_upload", value=1000)
        body = client.post("/api/thresholds/reset").json()
        assert next(t for t in body if t["metric"] == "total_upload")["value"] == 200


# ---------------------------------------------------------------------------
# Incidents
# ---------------------------------------------------------------------------

class TestIncidents:

    def test_empty_returns_paginated_response(self, client):
        body = client.get("/api/incidents").json()
        assert body["items"] == []
        assert body["total"] == 0
        assert body["has_more"] is False

    def test_filter_by_type_and_severity(self, client, harness):
        seed_incident(harness.repo)
        seed_incident(harness.repo, type=IncidentType.CPU_ANOMALY, severity=IncidentSeverity.MEDIUM)
        items = client.get("/api/incidents?type=cpu_anomaly").json()["items"]
        assert [i["type"] for i in items] == ["cpu_anomaly"]
        items = client.get("/api/incidents?severity=HIGH").json()["items"]
        assert [i["severity"] for i in items] == ["HIGH"]

    def test_has_more(self, client, harness):
        for i in range(3):
            seed_incident(harness.repo, opened_at=float(i))
        body = client.get("/api/incidents?limit=2").json()
        assert len(body["items"]) == 2
        assert body["has_more"] is True

    def test_limit_max_capped_at_500(self, client):
        assert client.get("/api/incidents?limit=9999").status_code == 422

    def test_get_by_id(self, client, harness):
        inc = seed_incident(harness.repo)
        resp = client.get(f"/api/incidents/{inc.incident_id}")
        assert resp.status_code == 200
        assert resp.json()["factors"] == ["total_upload"]

    def test_get_missing_is_404(self, client):
        assert client.get("/api/incidents/does-not-exist").status_code == 404

    def test_acknowledge_stored_incident(self, client, harness):
        inc = seed_incident(harness.repo)
        resp = client.post(f"/api/incidents/{inc.incident_id}/acknowledge")
        assert resp.status_code == 200
        assert resp.json()["is_acknowledged"] is True

    def test_resolve_live_incident_before_persisted(self, client, harness):
        live = raise_live_incident(harness)
        resp = client.post(f"/api/incidents/{live.incident_id}/resolve")
        assert resp.status_code == 200
        assert resp.json()["is_resolved"] is True
        assert harness.engine.open_incidents() == []

    def test_resolve_missing_is_404(self, client):
        assert client.post("/api/incidents/nope/resolve").status_code == 404


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

class TestSessions:

    def test_list_and_get(self, client, harness):
        s = MonitoringSession(started_at=100.0, ended_at=3700.0, battery_start=90, battery_end=80)
        harness.repo.save_session(s.to_dict())
        items = client.get("/api/sessions").json()
        assert [i["session_id"] for i in items] == [s.session_id]
        body = client.get(f"/api/sessions/{s.session_id}").json()
        assert body["duration_seconds"] == 3600.0

    def test_missing_session_is_404(self, client):
        assert client.get("/api/sessions/nope").status_code == 404


# ---------------------------------------------------------------------------
# WebSockets
# ---------------------------------------------------------------------------

def test_status_socket_greets_with_latest_status(client, harness):
    harness.engine.start(0.0)
    harness.engine.tick(61.0)
    with client.websocket_connect("/ws/status") as ws:
        body = ws.receive_json()
    assert body["timestamp"] == 61.0
    assert body["is_idle"] is True
