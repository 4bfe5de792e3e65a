"""
sessions/models.py

MonitoringSession — the Sleep Guard report for one scheduled unattended period.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field


@dataclass
class MonitoringSession:
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    started_at: float = 0.0
    ended_at: float | None = None

    battery_start: float = 100.0
    battery_end: float = 100.0

    total_upload_bytes: float = 0.0
    total_download_bytes: float = 0.0
    peak_cpu: float = 0.0
    average_cpu: float = 0.0
    peak_threat_score: int = 0
    average_threat_score: float = 0.0

    incident_count: int = 0
    has_anomalies: bool = False
    """True if any incident during the session was HIGH or CRITICAL."""

    @property
    def is_active(self) -> bool:
        return self.ended_at is None

    @property
    def duration_seconds(self) -> float:
        if self.ended_at is None:
            return 0.0
        return max(0.0, self.ended_at - self.started_at)

    @property
    def battery_used(self) -> float:
        return self.battery_start - self.battery_end

    @property
    def status_summary(self) -> str:
        if self.has_anomalies:
            return "Anomalies Detected"
        if self.incident_count > 0:
            return f"{self.incident_count} Events"
        return "All Clear"

    def to_dict(self) -> dict:
        return {
            "session_id":           self.session_id,
            "started_at":           self.started_at,
            "ended_at":             self.ended_at,
            "duration_seconds":     self.duration_seconds,
            "battery_start":        self.battery_start,
            "battery_end":          self.battery_end,
            "total_upload_bytes":   self.total_upload_bytes,
            "total_download_bytes": self.total_download_bytes,
            "peak_cpu":             self.peak_cpu,
            "average_cpu":          self.average_cpu,
            "peak_threat_score":    self.peak_threat_score,
            "average_threat_score": self.average_threat_score,
            "incident_count":       self.incident_count,
            "has_anomalies":        self.has_anomalies,
            "status_summary":       self.status_summary,
        }
