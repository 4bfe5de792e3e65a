"""
alerts/gate.py

AlertGate — decides what leaves the engine as incidents and notifications.

Incidents (checked every tick, in order):
  1. Classify  → triggered factors map to incident types; 3+ factors at once
                 also count as a multi-factor alert
  2. Open      → a type with an unresolved incident is not recorded again
  3. Dedup     → a type recorded within incident_dedup_seconds is skipped
  4. Cleared   → open incidents whose condition no longer fires are resolved

Notifications (checked on an accepted level change only):
  1. Level     → only ALERT / CRITICAL notify; NORMAL clears suspicion state
  2. Cooldown  → one notification per alert identity per alert_cooldown_seconds

Sinks are fire-and-forget callables. A raising sink is logged and ignored;
the gate never retries and never lets a delivery failure reach the tick.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable

from ..models import MetricSnapshot, ThreatLevel
from ..engine.models import LevelTransition, NotificationRequest, RollingTotals, ScoreResult
from .models import (
    INCIDENT_TYPE_BY_FACTOR,
    MULTI_FACTOR_MIN_FACTORS,
    Incident,
    IncidentSeverity,
    IncidentType,
)

logger = logging.getLogger(__name__)

IncidentSink = Callable[[Incident], None]
NotificationSink = Callable[[NotificationRequest], None]

_NOTIFY_LEVELS = frozenset({ThreatLevel.ALERT, ThreatLevel.CRITICAL})


class AlertGate:
    def __init__(
        self,
        incident_sink: IncidentSink | None = None,
        notification_sink: NotificationSink | None = None,
        alert_cooldown_seconds: float = 300.0,
        incident_dedup_seconds: float = 60.0,
    ) -> None:
        self.incident_sink = incident_sink
        self.notification_sink = notification_sink
        self.alert_cooldown_seconds = alert_cooldown_seconds
        self.incident_dedup_seconds = incident_dedup_seconds

        self._open: dict[IncidentType, Incident] = {}
        self._last_recorded: dict[IncidentType, float] = {}
        # alert identity → last notified timestamp
        self._cooldowns: dict[str, float] = {}

        self.suspicious_since: float | None = None
        self.suspicious_factors: set[str] = set()

        self.stats: dict[str, int] = {
            "incidents_recorded": 0,
            "incidents_deduplicated": 0,
            "incidents_cleared": 0,
            "notifications_sent": 0,
            "notifications_cooldown": 0,
            "notifications_failed": 0,
            "sink_errors": 0,
        }

    # ------------------------------------------------------------------
    # Incidents
    # ------------------------------------------------------------------

    def process_incidents(
        self,
        result: ScoreResult,
        snapshot: MetricSnapshot,
        totals: RollingTotals,
        now: float,
    ) -> list[Incident]:
        """Record new incidents and clear finished ones. Returns the new incidents."""
        detected = self._classify(result)
        recorded: list[Incident] = []

        for incident_type, (severity, names, reasons) in detected.items():
            if incident_type in self._open:
                continue

            last = self._last_recorded.get(incident_type)
            if last is not None and now - last < self.incident_dedup_seconds:
                self.stats["incidents_deduplicated"] += 1
                logger.debug(
                    "Incident %r deduplicated (%.0fs since last)", incident_type.value, now - last,
                )
                continue

            incident = Incident.from_snapshot(
                incident_type,
                severity,
                snapshot,
                score=result.score,
                now=now,
                hourly_upload_bytes=totals.upload_bytes,
                hourly_download_bytes=totals.download_bytes,
                details="; ".join(reasons),
                factors=names,
            )
            self._open[incident_type] = incident
            self._last_recorded[incident_type] = now
            self.stats["incidents_recorded"] += 1
            recorded.append(incident)
            logger.warning(
                "INCIDENT [%s] %s score=%d — %s",
                severity.value, incident_type.value, result.score, incident.details,
            )
            self._emit_incident(incident)

        for incident_type in [t for t in self._open if t not in detected]:
            incident = self._open.pop(incident_type)
            incident.resolve(now)
            self.stats["incidents_cleared"] += 1
            logger.info(
                "Incident %s cleared after %.0fs", incident_type.value, incident.duration_seconds or 0.0,
            )
            self._emit_incident(incident)

        return recorded

    def acknowledge(self, incident_id: str) -> Incident | None:
        incident = self._find_open(incident_id)
        if incident is None:
            return None
        if incident.acknowledge():
            self._emit_incident(incident)
        return incident

    def resolve(self, incident_id: str, now: float) -> Incident | None:
        incident = self._find_open(incident_id)
        if incident is None:
            return None
        del self._open[incident.type]
        incident.resolve(now)
        self._emit_incident(incident)
        return incident

    @property
    def open_incidents(self) -> list[Incident]:
        return list(self._open.values())

    def _find_open(self, incident_id: str) -> Incident | None:
        for incident in self._open.values():
            if incident.incident_id == incident_id:
                return incident
        return None

    @staticmethod
    def _classify(
        result: ScoreResult,
    ) -> dict[IncidentType, tuple[IncidentSeverity, list[str], list[str]]]:
        detected: dict[IncidentType, tuple[IncidentSeverity, list[str], list[str]]] = {}
        for factor in result.factors:
            mapping = INCIDENT_TYPE_BY_FACTOR.get(factor.name)
            if mapping is None:
                continue
            incident_type, severity = mapping
            if incident_type in detected:
                prev_sev, names, reasons = detected[incident_type]
                if severity.rank > prev_sev.rank:
                    prev_sev = severity
                detected[incident_type] = (prev_sev, names + [factor.name], reasons + [factor.reason])
            else:
                detected[incident_type] = (severity, [factor.name], [factor.reason])

        if len(result.factors) >= MULTI_FACTOR_MIN_FACTORS:
            detected[IncidentType.MULTI_FACTOR_ALERT] = (
                IncidentSeverity.CRITICAL,
                [f.name for f in result.factors],
                [f.reason for f in result.factors],
            )
        return detected

    def _emit_incident(self, incident: Incident) -> None:
        if self.incident_sink is None:
            return
        try:
            self.incident_sink(replace(incident, factors=list(incident.factors)))
        except Exception as exc:
            self.stats["sink_errors"] += 1
            logger.error("Incident sink failed for %r: %s", incident, exc)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def on_transition(
        self,
        transition: LevelTransition,
        result: ScoreResult,
    ) -> NotificationRequest | None:
        """
        Handle an accepted level change.

        Returns the NotificationRequest handed to the sink, or None.
        """
        now = transition.at

        if transition.current == ThreatLevel.NORMAL:
            if self.suspicious_since is not None:
                logger.info(
                    "Back to normal after %.0fs of suspicious activity",
                    now - self.suspicious_since,
                )
            self.suspicious_since = None
            self.suspicious_factors.clear()
            return None

        if self.suspicious_since is None:
            self.suspicious_since = now
        self.suspicious_factors.update(result.factor_names)

        if transition.current not in _NOTIFY_LEVELS:
            return None

        top = result.top_factor()
        identity = top.name if top is not None else f"level:{transition.current.value.lower()}"

        allowed, reason = self.should_notify(identity, now)
        if not allowed:
            logger.debug("Notification %r suppressed: %s", identity, reason)
            return None

        request = NotificationRequest(
            title=transition.current.message,
            body=(
                "; ".join(f.reason for f in result.factors)
                if result.factors else "Various indicators"
            ),
            severity=transition.current,
            identity=identity,
            timestamp=now,
        )
        self._dispatch(request)
        return request

    def should_notify(self, identity: str, now: float) -> tuple[bool, str]:
        """
        Return (allowed, reason) and, when allowed, start the identity's cooldown.

        Reasons: COOLDOWN, APPROVED.
        """
        last = self._cooldowns.get(identity)
        if last is not None and now - last < self.alert_cooldown_seconds:
            self.stats["notifications_cooldown"] += 1
            return False, "COOLDOWN"
        self._cooldowns[identity] = now
        return True, "APPROVED"

    def _dispatch(self, request: NotificationRequest) -> None:
        if self.notification_sink is None:
            logger.warning("ALERT (no notifier): %s — %s", request.title, request.body)
            self.stats["notifications_sent"] += 1
            return
        try:
            self.notification_sink(request)
            self.stats["notifications_sent"] += 1
        except Exception as exc:
            self.stats["notifications_failed"] += 1
            logger.error("Notification dispatch failed for %r: %s", request.identity, exc)
