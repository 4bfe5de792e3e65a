"""
sessions/tracker.py

SessionTracker — accumulates engine statuses and incidents into a
MonitoringSession between start() and end().

Transfer totals come from the cumulative interface counters carried by each
status snapshot; a counter that goes backwards contributes nothing for that
step. Calls outside an active session are ignored.
"""

from __future__ import annotations

import logging
from datetime import datetime

from ..alerts.models import Incident, IncidentSeverity
from ..engine.models import EngineStatus
from .models import MonitoringSession
from .schedule import SleepSchedule

logger = logging.getLogger(__name__)


class SessionTracker:
    def __init__(self) -> None:
        self._session: MonitoringSession | None = None
        self._last_counters: tuple[float, float] | None = None
        self._samples = 0
        self._cpu_sum = 0.0
        self._score_sum = 0
        self._incident_ids: set[str] = set()

    @property
    def current(self) -> MonitoringSession | None:
        return self._session

    @property
    def active(self) -> bool:
        return self._session is not None

    def start(self, now: float, battery: float = 100.0) -> MonitoringSession:
        if self._session is not None:
            return self._session
        self._session = MonitoringSession(started_at=now, battery_start=battery, battery_end=battery)
        self._last_counters = None
        self._samples = 0
        self._cpu_sum = 0.0
        self._score_sum = 0
        self._incident_ids.clear()
        logger.info("Sleep Guard session %s started (battery=%.0f%%)", self._session.session_id[:8], battery)
        return self._session

    def record(self, status: EngineStatus) -> None:
        session = self._session
        if session is None:
            return

        snap = status.snapshot
        counters = (snap.cumulative_upload_bytes, snap.cumulative_download_bytes)
        if self._last_counters is not None:
            session.total_upload_bytes += max(0.0, counters[0] - self._last_counters[0])
            session.total_download_bytes += max(0.0, counters[1] - self._last_counters[1])
        self._last_counters = counters

        self._samples += 1
        self._cpu_sum += snap.cpu_percent
        self._score_sum += status.score
        session.peak_cpu = max(session.peak_cpu, snap.cpu_percent)
        session.peak_threat_score = max(session.peak_threat_score, status.score)
        session.battery_end = snap.battery_level_percent

    def record_incident(self, incident: Incident) -> None:
        session = self._session
        if session is None or incident.incident_id in self._incident_ids:
            return
        self._incident_ids.add(incident.incident_id)
        session.incident_count += 1
        if incident.severity.rank >= IncidentSeverity.HIGH.rank:
            session.has_anomalies = True

    def end(self, now: float, battery: float | None = None) -> MonitoringSession | None:
        session, self._session = self._session, None
        if session is None:
            return None
        session.ended_at = now
        if battery is not None:
            session.battery_end = battery
        if self._samples:
            session.average_cpu = self._cpu_sum / self._samples
            session.average_threat_score = self._score_sum / self._samples
        logger.info(
            "Sleep Guard session %s ended after %.0fs — %d incident(s), %s",
            session.session_id[:8], session.duration_seconds, session.incident_count, session.status_summary,
        )
        return session

    def apply_schedule(
        self,
        schedule: SleepSchedule,
        when: datetime,
        now: float,
        battery: float = 100.0,
    ) -> MonitoringSession | None:
        """
        Start or end a session to match *schedule* at wall-clock *when*.

        Returns the finished session when this call ended one, else None.
        """
        inside = schedule.is_within(when)
        if inside and not self.active:
            self.start(now, battery)
        elif not inside and self.active:
            return self.end(now, battery)
        return None
