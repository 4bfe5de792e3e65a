"""
alerts/models.py

Incident — a recorded, deduplicated anomaly episode.

Lifecycle: open → (acknowledged) → resolved. A resolved incident is never
reopened; the gate records a new one instead.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..models import MetricSnapshot


class IncidentType(str, Enum):
    SCREEN_SURVEILLANCE = "screen_surveillance"
    DATA_EXFILTRATION   = "data_exfiltration"
    EXCESSIVE_DOWNLOAD  = "excessive_download"
    CPU_ANOMALY         = "cpu_anomaly"
    BATTERY_ANOMALY     = "battery_anomaly"
    THERMAL_ANOMALY     = "thermal_anomaly"
    MULTI_FACTOR_ALERT  = "multi_factor_alert"

    @property
    def title(self) -> str:
        return _TITLES[self]


_TITLES = {
    IncidentType.SCREEN_SURVEILLANCE: "Possible Screen Surveillance",
    IncidentType.DATA_EXFILTRATION:   "Suspicious Data Upload",
    IncidentType.EXCESSIVE_DOWNLOAD:  "Unusual Background Download",
    IncidentType.CPU_ANOMALY:         "Abnormal CPU Activity",
    IncidentType.BATTERY_ANOMALY:     "Unusual Battery Drain",
    IncidentType.THERMAL_ANOMALY:     "Thermal Anomaly",
    IncidentType.MULTI_FACTOR_ALERT:  "Multi-Factor Security Alert",
}


class IncidentSeverity(str, Enum):
    LOW      = "LOW"
    MEDIUM   = "MEDIUM"
    HIGH     = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return ("LOW", "MEDIUM", "HIGH", "CRITICAL").index(self.value)


# Factor name → (incident type, severity)
INCIDENT_TYPE_BY_FACTOR: dict[str, tuple[IncidentType, IncidentSeverity]] = {
    "surveillance_pattern": (IncidentType.SCREEN_SURVEILLANCE, IncidentSeverity.CRITICAL),
    "total_upload":         (IncidentType.DATA_EXFILTRATION,   IncidentSeverity.HIGH),
    "upload_rate":          (IncidentType.DATA_EXFILTRATION,   IncidentSeverity.HIGH),
    "total_download":       (IncidentType.EXCESSIVE_DOWNLOAD,  IncidentSeverity.MEDIUM),
    "cpu_usage":            (IncidentType.CPU_ANOMALY,         IncidentSeverity.MEDIUM),
    "battery_drain":        (IncidentType.BATTERY_ANOMALY,     IncidentSeverity.MEDIUM),
    "thermal":              (IncidentType.THERMAL_ANOMALY,     IncidentSeverity.MEDIUM),
}

MULTI_FACTOR_MIN_FACTORS = 3


@dataclass
class Incident:
    incident_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    type: IncidentType = IncidentType.CPU_ANOMALY
    severity: IncidentSeverity = IncidentSeverity.LOW

    opened_at: float = field(default_factory=time.time)
    closed_at: float | None = None
    is_resolved: bool = False
    is_acknowledged: bool = False

    # Metrics at time of detection
    upload_bps: float = 0.0
    download_bps: float = 0.0
    cpu_percent: float = 0.0
    battery_drain_per_hour: float = 0.0
    thermal_level: int = 0
    threat_score: int = 0
    hourly_upload_bytes: float = 0.0
    hourly_download_bytes: float = 0.0

    summary: str = ""
    details: str = ""
    factors: list[str] = field(default_factory=list)

    @classmethod
    def from_snapshot(
        cls,
        incident_type: IncidentType,
        severity: IncidentSeverity,
        snapshot: MetricSnapshot,
        score: int,
        now: float,
        hourly_upload_bytes: float = 0.0,
        hourly_download_bytes: float = 0.0,
        details: str = "",
        factors: list[str] | None = None,
    ) -> "Incident":
        return cls(
            type=incident_type,
            severity=severity,
            opened_at=now,
            upload_bps=snapshot.upload_bps,
            download_bps=snapshot.download_bps,
            cpu_percent=snapshot.cpu_percent,
            battery_drain_per_hour=snapshot.battery_drain_per_hour,
            thermal_level=int(snapshot.thermal_level),
            threat_score=score,
            hourly_upload_bytes=hourly_upload_bytes,
            hourly_download_bytes=hourly_download_bytes,
            summary=incident_type.title,
            details=details,
            factors=list(factors or []),
        )

    def acknowledge(self) -> bool:
        """Mark as seen. Returns False if nothing changed."""
        if self.is_acknowledged:
            return False
        self.is_acknowledged = True
        return True

    def resolve(self, now: float) -> bool:
        """Close the episode. Returns False if it was already resolved."""
        if self.is_resolved:
            return False
        self.is_resolved = True
        self.closed_at = now
        return True

    @property
    def duration_seconds(self) -> float | None:
        if self.closed_at is None:
            return None
        return self.closed_at - self.opened_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "incident_id":            self.incident_id,
            "type":                   self.type.value,
            "severity":               self.severity.value,
            "opened_at":              self.opened_at,
            "closed_at":              self.closed_at,
            "is_resolved":            self.is_resolved,
            "is_acknowledged":        self.is_acknowledged,
            "upload_bps":             self.upload_bps,
            "download_bps":           self.download_bps,
            "cpu_percent":            self.cpu_percent,
            "battery_drain_per_hour": self.battery_drain_per_hour,
            "thermal_level":          self.thermal_level,
            "threat_score":           self.threat_score,
            "hourly_upload_bytes":    self.hourly_upload_bytes,
            "hourly_download_bytes":  self.hourly_download_bytes,
            "summary":                self.summary,
            "details":                self.details,
            "factors":                list(self.factors),
        }

    def __repr__(self) -> str:
        state = "resolved" if self.is_resolved else "open"
        return f"Incident({self.type.value!r} {self.severity.value} {state} id={self.incident_id[:8]})"
