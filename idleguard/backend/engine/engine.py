"""
engine/engine.py

ThreatEngine — the tick orchestrator.

Per tick, under one lock:
  snapshot → rolling totals → idle → baseline (quiet idle only) → score
  → level state machine → alert gate → activity log → publish status

Listeners are called after the lock is released with the freshly published
EngineStatus. Incidents and notifications leave through the gate's sinks;
nothing in here does I/O.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Callable

from ..aggregation.latest import LatestSampleStore
from ..aggregation.rolling_window import RollingWindowTotal
from ..alerts.gate import AlertGate, IncidentSink, NotificationSink
from ..alerts.models import Incident
from ..models import ThreatLevel
from ..thresholds.store import ThresholdStore
from .baseline import BaselineLearner
from .idle import IdleDetector
from .levels import LevelStateMachine
from .models import (
    ActivityEntry,
    ActivityType,
    EngineStatus,
    LevelTransition,
    RollingTotals,
    ScoreResult,
)
from .scoring import ThreatScorer

logger = logging.getLogger(__name__)

StatusListener = Callable[[EngineStatus], None]

# Gate counters mirrored into ThreatEngine.stats after every tick
_GATE_STATS = (
    "incidents_recorded",
    "incidents_deduplicated",
    "notifications_sent",
    "notifications_cooldown",
)


class ThreatEngine:
    """
    Tick orchestrator.

    The level dwell clock starts at the first start(now). An engine that is
    ticked without ever being started starts it at the first tick instead, so
    any level change inside the first cooldown period is held either way.
    """

    def __init__(
        self,
        store: LatestSampleStore,
        threshold_store: ThresholdStore,
        scorer: ThreatScorer | None = None,
        incident_sink: IncidentSink | None = None,
        notification_sink: NotificationSink | None = None,
        idle_threshold_seconds: float = 60.0,
        idle_cpu_threshold: float = 15.0,
        idle_network_threshold_bps: float = 50 * 1024,
        cold_start_samples: int = 30,
        baseline_alpha: float = 0.1,
        baseline_multiplier: float = 5.0,
        level_cooldown_seconds: float = 60.0,
        alert_cooldown_seconds: float = 300.0,
        incident_dedup_seconds: float = 60.0,
        rolling_window_seconds: float = 3600.0,
        activity_log_max: int = 50,
    ) -> None:
        self._lock = threading.Lock()
        self._store = store
        self._thresholds = threshold_store
        self._scorer = scorer or ThreatScorer(baseline_multiplier=baseline_multiplier)

        self._idle = IdleDetector(
            idle_threshold_seconds=idle_threshold_seconds,
            idle_cpu_threshold=idle_cpu_threshold,
            idle_network_threshold_bps=idle_network_threshold_bps,
        )
        self._baseline = BaselineLearner(cold_start_samples=cold_start_samples, alpha=baseline_alpha)
        self._levels = LevelStateMachine(cooldown_seconds=level_cooldown_seconds)
        self._rolling = RollingWindowTotal(window_seconds=rolling_window_seconds)
        self._gate = AlertGate(
            incident_sink=incident_sink,
            notification_sink=notification_sink,
            alert_cooldown_seconds=alert_cooldown_seconds,
            incident_dedup_seconds=incident_dedup_seconds,
        )

        self._activity: deque[ActivityEntry] = deque(maxlen=activity_log_max)
        self._listeners: list[StatusListener] = []
        self._monitoring = False
        self._status = EngineStatus()

        self.stats: dict[str, int] = {
            "ticks": 0,
            "idle_ticks": 0,
            "baseline_updates": 0,
            "level_changes": 0,
            "levels_held": 0,
            "incidents_recorded": 0,
            "incidents_deduplicated": 0,
            "notifications_sent": 0,
            "notifications_cooldown": 0,
            "listener_errors": 0,
        }
        logger.info(
            "ThreatEngine ready — idle>=%.0fs level_cooldown=%.0fs alert_cooldown=%.0fs factors=%s",
            idle_threshold_seconds,
            level_cooldown_seconds,
            alert_cooldown_seconds,
            [f.name for f in self._scorer.factors],
        )

    @classmethod
    def from_settings(
        cls,
        store: LatestSampleStore,
        threshold_store: ThresholdStore,
        cfg,
        incident_sink: IncidentSink | None = None,
        notification_sink: NotificationSink | None = None,
    ) -> "ThreatEngine":
        """Build an engine from a Settings instance."""
        return cls(
            store,
            threshold_store,
            incident_sink=incident_sink,
            notification_sink=notification_sink,
            idle_threshold_seconds=cfg.IDLE_THRESHOLD_SECONDS,
            idle_cpu_threshold=cfg.IDLE_CPU_THRESHOLD,
            idle_network_threshold_bps=cfg.IDLE_NETWORK_THRESHOLD_BPS,
            cold_start_samples=cfg.BASELINE_COLD_START_SAMPLES,
            baseline_alpha=cfg.BASELINE_ALPHA,
            baseline_multiplier=cfg.BASELINE_MULTIPLIER,
            level_cooldown_seconds=cfg.LEVEL_CHANGE_COOLDOWN_SECONDS,
            alert_cooldown_seconds=cfg.ALERT_COOLDOWN_SECONDS,
            incident_dedup_seconds=cfg.INCIDENT_DEDUP_SECONDS,
            rolling_window_seconds=cfg.ROLLING_WINDOW_SECONDS,
            activity_log_max=cfg.ACTIVITY_LOG_MAX_ENTRIES,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, now: float) -> None:
        with self._lock:
            if self._monitoring:
                return
            self._monitoring = True
            # Turning monitoring on is itself an interaction
            self._idle.register_interaction(now)
            self._levels.anchor(now)
            self._log_activity(
                ActivityType.MONITORING_STARTED,
                "Monitoring Started",
                "IdleGuard is now watching for background activity",
                now,
            )
        logger.info("Monitoring started")

    def stop(self, now: float) -> None:
        with self._lock:
            if not self._monitoring:
                return
            self._monitoring = False
            self._log_activity(
                ActivityType.MONITORING_STOPPED,
                "Monitoring Stopped",
                "Background monitoring paused",
                now,
            )
        logger.info("Monitoring stopped")

    @property
    def monitoring(self) -> bool:
        return self._monitoring

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self, now: float) -> EngineStatus:
        with self._lock:
            status = self._tick_locked(now)
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(status)
            except Exception as exc:
                self.stats["listener_errors"] += 1
                logger.error("Status listener %r raised: %s", listener, exc)
        return status

    def _tick_locked(self, now: float) -> EngineStatus:
        self.stats["ticks"] += 1
        snapshot = self._store.snapshot(now)

        if self._store.has_counters:
            self._rolling.add(now, snapshot.cumulative_upload_bytes, snapshot.cumulative_download_bytes)
        totals = RollingTotals(
            upload_bytes=self._rolling.upload_bytes(now),
            download_bytes=self._rolling.download_bytes(now),
        )

        was_idle = self._idle.is_idle
        is_idle = self._idle.update(
            now, snapshot.cpu_percent, snapshot.upload_bps, snapshot.download_bps,
        )
        if is_idle:
            self.stats["idle_ticks"] += 1
            if not was_idle:
                self._log_activity(
                    ActivityType.IDLE_ENTERED,
                    "Device Idle",
                    "No interaction detected, threat scoring active",
                    now,
                )
            if self._idle.is_quiet(snapshot.cpu_percent, snapshot.upload_bps, snapshot.download_bps):
                self._baseline.observe(snapshot.upload_bps, snapshot.download_bps, snapshot.cpu_percent)
                self.stats["baseline_updates"] += 1

        result = self._scorer.score(
            snapshot,
            is_idle,
            self._baseline.snapshot(),
            self._thresholds.snapshot(),
            totals,
        )

        transition = self._levels.update(result.score, now)
        self.stats["levels_held"] = self._levels.held_count
        if transition is not None:
            self.stats["level_changes"] += 1
            self._on_transition(transition, result)

        self._gate.process_incidents(result, snapshot, totals, now)
        for key in _GATE_STATS:
            self.stats[key] = self._gate.stats[key]

        level = self._levels.level
        self._status = EngineStatus(
            timestamp=now,
            monitoring=self._monitoring,
            score=result.score,
            level=level,
            is_idle=is_idle,
            idle_duration_seconds=self._idle.idle_duration(now),
            factors=result.factors,
            snapshot=snapshot.with_threat(result.score, level),
            baseline=self._baseline.snapshot(),
            hourly_upload_mb=totals.upload_mb,
            hourly_download_mb=totals.download_mb,
            recent_activity=tuple(reversed(self._activity)),
        )
        return self._status

    def _on_transition(self, transition: LevelTransition, result: ScoreResult) -> None:
        current = transition.current
        if current == ThreatLevel.NORMAL:
            description = "No suspicious activity detected"
        elif result.factors:
            description = "; ".join(f.reason for f in result.factors)
        else:
            description = f"Threat score {transition.score}"

        logger.log(
            logging.WARNING if transition.escalated else logging.INFO,
            "Threat level %s → %s (score=%d)",
            transition.previous.value, current.value, transition.score,
        )
        self._log_activity(ActivityType.for_level(current), current.message, description, transition.at, current)
        self._gate.on_transition(transition, result)

    def _log_activity(
        self,
        activity_type: ActivityType,
        title: str,
        description: str,
        now: float,
        level: ThreatLevel | None = None,
    ) -> None:
        self._activity.append(ActivityEntry(
            type=activity_type,
            title=title,
            description=description,
            level=level or self._levels.level,
            timestamp=now,
        ))

    # ------------------------------------------------------------------
    # External inputs
    # ------------------------------------------------------------------

    def register_interaction(self, now: float) -> None:
        with self._lock:
            self._idle.register_interaction(now)

    def acknowledge_incident(self, incident_id: str) -> Incident | None:
        with self._lock:
            return self._gate.acknowledge(incident_id)

    def resolve_incident(self, incident_id: str, now: float) -> Incident | None:
        with self._lock:
            return self._gate.resolve(incident_id, now)

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    def status(self) -> EngineStatus:
        """Last published status; safe from any thread."""
        return self._status

    def recent_activity(self) -> list[ActivityEntry]:
        """Newest first."""
        with self._lock:
            return list(reversed(self._activity))

    def open_incidents(self) -> list[Incident]:
        with self._lock:
            return self._gate.open_incidents

    def add_listener(self, listener: StatusListener) -> None:
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: StatusListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)
