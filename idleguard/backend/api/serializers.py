"""
api/serializers.py

Pydantic request / response models for the HTTP API.
"""

from __future__ import annotations

from pydantic import BaseModel


class ThreatFactorResponse(BaseModel):
    name: str
    score: int
    reason: str


class ActivityEntryResponse(BaseModel):
    entry_id: str
    timestamp: float
    type: str
    title: str
    description: str
    level: str


class StatusResponse(BaseModel):
    timestamp: float
    monitoring: bool
    score: int
    level: str
    is_idle: bool
    idle_duration_seconds: float
    factors: list[ThreatFactorResponse]
    snapshot: dict
    baseline: dict
    hourly_upload_mb: float
    hourly_download_mb: float
    recent_activity: list[ActivityEntryResponse]


class InteractionResponse(BaseModel):
    registered_at: float
    is_idle: bool


class ThresholdResponse(BaseModel):
    metric: str
    title: str
    unit: str
    value: float
    enabled: bool
    min_value: float
    max_value: float
    step: float


class ThresholdUpdateRequest(BaseModel):
    """Partial update of one threshold; omitted fields stay as they are."""

    metric: str
    value: float | None = None
    enabled: bool | None = None


class IncidentResponse(BaseModel):
    incident_id: str
    type: str
    severity: str
    opened_at: float
    closed_at: float | None = None
    is_resolved: bool
    is_acknowledged: bool
    upload_bps: float
    download_bps: float
    cpu_percent: float
    battery_drain_per_hour: float
    thermal_level: int
    threat_score: int
    hourly_upload_bytes: float
    hourly_download_bytes: float
    summary: str
    details: str
    factors: list[str] = []

    model_config = {"from_attributes": True}


class PaginatedIncidentsResponse(BaseModel):
    items: list[IncidentResponse]
    total: int
    limit: int
    offset: int
    has_more: bool


class SessionResponse(BaseModel):
    session_id: str
    started_at: float
    ended_at: float | None
    duration_seconds: float
    battery_start: float
    battery_end: float
    total_upload_bytes: float
    total_download_bytes: float
    peak_cpu: float
    average_cpu: float
    peak_threat_score: int
    average_threat_score: float
    incident_count: int
    has_anomalies: bool


class StatsResponse(BaseModel):
    total_incidents: int
    open_incidents: int
    incidents_last_hour: int
    incidents_by_type: dict[str, int]
    incidents_by_severity: dict[str, int]
    engine_stats: dict
