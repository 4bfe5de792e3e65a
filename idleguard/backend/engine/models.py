"""
engine/models.py

Data models for the threat engine.

FactorResult     — returned by every factor's evaluate() method
ThreatFactor     — one triggered contributor to the threat score
ScoreResult      — (score, factors) produced by ThreatScorer
Baseline         — immutable view of the learned idle baseline
LevelTransition  — emitted when the level state machine accepts a change
ActivityEntry    — one row of the capped recent-activity log
NotificationRequest — fire-and-forget request to the notification sink
EngineStatus     — the published per-tick projection for UI consumers
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..models import MetricSnapshot, ThreatLevel


# ---------------------------------------------------------------------------
# Factor evaluation
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class FactorResult:
    """
    Return value of BaseFactor.evaluate().

    Factors must NEVER raise — the scorer treats an exception as not triggered.
    Evidence must contain only JSON-serializable types.
    """

    triggered: bool
    score: int
    reason: str
    evidence: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def quiet(cls, reason: str = "") -> "FactorResult":
        return cls(triggered=False, score=0, reason=reason)

    def __repr__(self) -> str:
        return f"FactorResult(triggered={self.triggered} score={self.score} reason={self.reason!r})"


@dataclass(frozen=True, slots=True)
class ThreatFactor:
    """One triggered contributor to the overall score. Never persisted by the engine."""

    name: str
    score: int
    reason: str

    def to_dict(self) -> dict:
        return {"name": self.name, "score": self.score, "reason": self.reason}


@dataclass(frozen=True, slots=True)
class ScoreResult:
    score: int
    factors: tuple[ThreatFactor, ...] = ()

    @property
    def factor_names(self) -> list[str]:
        return [f.name for f in self.factors]

    def top_factor(self) -> ThreatFactor | None:
        """Highest-contributing factor; earlier factors win ties."""
        if not self.factors:
            return None
        return max(self.factors, key=lambda f: f.score)


# ---------------------------------------------------------------------------
# Baseline
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Baseline:
    upload_bps: float = 0.0
    download_bps: float = 0.0
    cpu_percent: float = 0.0
    sample_count: int = 0
    is_warm: bool = False
    """True once the learner has left its cold-start (simple mean) phase."""

    def to_dict(self) -> dict:
        return {
            "upload_bps":   self.upload_bps,
            "download_bps": self.download_bps,
            "cpu_percent":  self.cpu_percent,
            "sample_count": self.sample_count,
            "is_warm":      self.is_warm,
        }


@dataclass(frozen=True, slots=True)
class RollingTotals:
    """Bytes moved in the trailing window, per direction."""

    upload_bytes: float = 0.0
    download_bytes: float = 0.0

    @property
    def upload_mb(self) -> float:
        return self.upload_bytes / BYTES_PER_MB

    @property
    def download_mb(self) -> float:
        return self.download_bytes / BYTES_PER_MB


# Decimal megabytes, for both hourly totals and MB/h rate equivalents.
BYTES_PER_MB = 1_000_000


# ---------------------------------------------------------------------------
# Level transitions
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class LevelTransition:
    previous: ThreatLevel
    current: ThreatLevel
    score: int
    at: float

    @property
    def escalated(self) -> bool:
        return self.current > self.previous


# ---------------------------------------------------------------------------
# Activity log
# ---------------------------------------------------------------------------

class ActivityType(str, Enum):
    MONITORING_STARTED = "monitoring_started"
    MONITORING_STOPPED = "monitoring_stopped"
    IDLE_ENTERED       = "idle_entered"
    NORMAL             = "normal"
    WARNING            = "warning"
    ALERT              = "alert"
    CRITICAL           = "critical"

    @classmethod
    def for_level(cls, level: ThreatLevel) -> "ActivityType":
        return cls(level.value.lower())


@dataclass(frozen=True, slots=True)
class ActivityEntry:
    type: ActivityType
    title: str
    description: str
    level: ThreatLevel = ThreatLevel.NORMAL
    timestamp: float = field(default_factory=time.time)
    entry_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> dict:
        return {
            "entry_id":    self.entry_id,
            "timestamp":   self.timestamp,
            "type":        self.type.value,
            "title":       self.title,
            "description": self.description,
            "level":       self.level.value,
        }


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class NotificationRequest:
    title: str
    body: str
    severity: ThreatLevel
    identity: str
    """Logical alert identity used for cooldown, e.g. 'total_upload'."""

    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "title":     self.title,
            "body":      self.body,
            "severity":  self.severity.value,
            "identity":  self.identity,
            "timestamp": self.timestamp,
        }


# ---------------------------------------------------------------------------
# Published status
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class EngineStatus:
    """
    Immutable projection published after every tick.

    Any thread may read the latest instance via ThreatEngine.status();
    only the tick executor creates new ones.
    """

    timestamp: float = 0.0
    monitoring: bool = False
    score: int = 0
    level: ThreatLevel = ThreatLevel.NORMAL
    is_idle: bool = False
    idle_duration_seconds: float = 0.0
    factors: tuple[ThreatFactor, ...] = ()
    snapshot: MetricSnapshot = field(default_factory=MetricSnapshot)
    baseline: Baseline = field(default_factory=Baseline)
    hourly_upload_mb: float = 0.0
    hourly_download_mb: float = 0.0
    recent_activity: tuple[ActivityEntry, ...] = ()
    """Newest first, capped by the engine."""

    def to_dict(self) -> dict:
        return {
            "timestamp":             self.timestamp,
            "monitoring":            self.monitoring,
            "score":                 self.score,
            "level":                 self.level.value,
            "is_idle":               self.is_idle,
            "idle_duration_seconds": self.idle_duration_seconds,
            "factors":               [f.to_dict() for f in self.factors],
            "snapshot":              self.snapshot.to_dict(),
            "baseline":              self.baseline.to_dict(),
            "hourly_upload_mb":      self.hourly_upload_mb,
            "hourly_download_mb":    self.hourly_download_mb,
            "recent_activity":       [e.to_dict() for e in self.recent_activity],
        }
