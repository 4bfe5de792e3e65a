"""
storage/repository.py

IncidentRepository — persistence for incidents and Sleep Guard sessions.

Writes never raise: a failed write is logged and dropped so the async
consumers keep running. Reads return plain dicts ready for the API layer.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from .database import Database

logger = logging.getLogger(__name__)

_MAX_PAGE = 500

_INCIDENT_COLUMNS = (
    "incident_id", "type", "severity", "opened_at", "closed_at",
    "is_resolved", "is_acknowledged",
    "upload_bps", "download_bps", "cpu_percent", "battery_drain_per_hour",
    "thermal_level", "threat_score", "hourly_upload_bytes", "hourly_download_bytes",
    "summary", "details", "factors",
)

_SESSION_COLUMNS = (
    "session_id", "started_at", "ended_at", "battery_start", "battery_end",
    "total_upload_bytes", "total_download_bytes", "peak_cpu", "average_cpu",
    "peak_threat_score", "average_threat_score", "incident_count", "has_anomalies",
)


class IncidentRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    # ==================================================================
    # Incidents — writes
    # ==================================================================

    def save_incident(self, incident: dict) -> None:
        """
        Insert a new incident, or refresh the lifecycle fields of a known one.

        Detection-time metrics are immutable; only closed_at and the two
        flags change after the first write.
        """
        try:
            factors_json = json.dumps(list(incident.get("factors", [])))
        except (TypeError, ValueError) as exc:
            logger.error("save_incident: factors not JSON-serializable: %s", exc)
            factors_json = "[]"

        row = {**incident, "factors": factors_json}
        row["is_resolved"] = int(bool(row.get("is_resolved")))
        row["is_acknowledged"] = int(bool(row.get("is_acknowledged")))

        placeholders = ", ".join("?" for _ in _INCIDENT_COLUMNS)
        try:
            self._db.execute(
                f"""
                INSERT INTO incidents ({", ".join(_INCIDENT_COLUMNS)})
                VALUES ({placeholders})
                ON CONFLICT(incident_id) DO UPDATE SET
                    closed_at       = COALESCE(closed_at, excluded.closed_at),
                    is_resolved     = MAX(is_resolved, excluded.is_resolved),
                    is_acknowledged = MAX(is_acknowledged, excluded.is_acknowledged)
                """,
                tuple(row.get(c) for c in _INCIDENT_COLUMNS),
            )
            self._db.commit()
        except Exception as exc:
            logger.error("save_incident DB write failed for %s: %s", incident.get("incident_id"), exc)

    def update_incident_state(
        self,
        incident_id: str,
        acknowledged: bool | None = None,
        resolved_at: float | None = None,
    ) -> bool:
        """
        Acknowledge and/or resolve a stored incident. Returns True if a row changed.

        A resolved incident keeps its original closed_at.
        """
        sets: list[str] = []
        params: list[Any] = []
        if acknowledged:
            sets.append("is_acknowledged = 1")
        if resolved_at is not None:
            sets.append("closed_at = COALESCE(closed_at, ?)")
            params.append(resolved_at)
            sets.append("is_resolved = 1")
        if not sets:
            return False
        params.append(incident_id)
        try:
            cur = self._db.execute(
                f"UPDATE incidents SET {', '.join(sets)} WHERE incident_id = ?",
                tuple(params),
            )
            self._db.commit()
            return cur.rowcount > 0
        except Exception as exc:
            logger.error("update_incident_state failed for %s: %s", incident_id, exc)
            return False

    # ==================================================================
    # Incidents — reads
    # ==================================================================

    def get_incidents(
        self,
        limit: int = 100,
        offset: int = 0,
        incident_type: str | None = None,
        severity: str | None = None,
        resolved: bool | None = None,
        since: float | None = None,
    ) -> list[dict]:
        where, params = self._build_where(incident_type, severity, resolved, since)
        sql = f"""
            SELECT * FROM incidents
            {where}
            ORDER BY opened_at DESC
            LIMIT ? OFFSET ?
        """
        params.extend([min(limit, _MAX_PAGE), offset])
        rows = self._db.execute(sql, tuple(params)).fetchall()
        return [self._incident_row(r) for r in rows]

    def get_incident_by_id(self, incident_id: str) -> dict | None:
        row = self._db.execute(
            "SELECT * FROM incidents WHERE incident_id = ?", (incident_id,)
        ).fetchone()
        return self._incident_row(row) if row else None

    def get_incident_count(
        self,
        incident_type: str | None = None,
        severity: str | None = None,
        resolved: bool | None = None,
        since: float | None = None,
    ) -> int:
        where, params = self._build_where(incident_type, severity, resolved, since)
        row = self._db.execute(
            f"SELECT COUNT(*) FROM incidents {where}", tuple(params)
        ).fetchone()
        return row[0] if row else 0

    def get_incident_summary(self) -> dict:
        one_hour_ago = time.time() - 3600

        total = self._db.execute("SELECT COUNT(*) FROM incidents").fetchone()[0]
        open_count = self._db.execute(
            "SELECT COUNT(*) FROM incidents WHERE is_resolved = 0"
        ).fetchone()[0]
        last_hour = self._db.execute(
            "SELECT COUNT(*) FROM incidents WHERE opened_at >= ?", (one_hour_ago,)
        ).fetchone()[0]
        by_type = {
            r[0]: r[1]
            for r in self._db.execute("SELECT type, COUNT(*) FROM incidents GROUP BY type")
        }
        by_severity = {
            r[0]: r[1]
            for r in self._db.execute("SELECT severity, COUNT(*) FROM incidents GROUP BY severity")
        }
        return {
            "total_incidents": total,
            "open_incidents": open_count,
            "incidents_last_hour": last_hour,
            "incidents_by_type": by_type,
            "incidents_by_severity": by_severity,
        }

    # ==================================================================
    # Sessions
    # ==================================================================

    def save_session(self, session: dict) -> None:
        row = dict(session)
        row["has_anomalies"] = int(bool(row.get("has_anomalies")))
        placeholders = ", ".join("?" for _ in _SESSION_COLUMNS)
        try:
            self._db.execute(
                f"""
                INSERT OR REPLACE INTO sessions ({", ".join(_SESSION_COLUMNS)})
                VALUES ({placeholders})
                """,
                tuple(row.get(c) for c in _SESSION_COLUMNS),
            )
            self._db.commit()
        except Exception as exc:
            logger.error("save_session DB write failed for %s: %s", session.get("session_id"), exc)

    def get_sessions(self, limit: int = 30, offset: int = 0) -> list[dict]:
        rows = self._db.execute(
            "SELECT * FROM sessions ORDER BY started_at DESC LIMIT ? OFFSET ?",
            (min(limit, _MAX_PAGE), offset),
        ).fetchall()
        return [self._session_row(r) for r in rows]

    def get_session_by_id(self, session_id: str) -> dict | None:
        row = self._db.execute(
            "SELECT * FROM sessions WHERE session_id = ?", (session_id,)
        ).fetchone()
        return self._session_row(row) if row else None

    # ==================================================================
    # Internal helpers
    # ==================================================================

    @staticmethod
    def _build_where(
        incident_type: str | None,
        severity: str | None,
        resolved: bool | None,
        since: float | None,
    ) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        if incident_type:
            clauses.append("type = ?")
            params.append(incident_type.lower())
        if severity:
            clauses.append("severity = ?")
            params.append(severity.upper())
        if resolved is not None:
            clauses.append("is_resolved = ?")
            params.append(int(resolved))
        if since is not None:
            clauses.append("opened_at >= ?")
            params.append(since)
        where = "WHERE " + " AND ".join(clauses) if clauses else ""
        return where, params

    @staticmethod
    def _incident_row(row: Any) -> dict:
        d = dict(row)
        d["is_resolved"] = bool(d.get("is_resolved"))
        d["is_acknowledged"] = bool(d.get("is_acknowledged"))
        try:
            d["factors"] = json.loads(d.get("factors") or "[]")
        except (TypeError, json.JSONDecodeError):
            d["factors"] = []
        return d

    @staticmethod
    def _session_row(row: Any) -> dict:
        d = dict(row)
        d["has_anomalies"] = bool(d.get("has_anomalies"))
        ended = d.get("ended_at")
        d["duration_seconds"] = max(0.0, ended - d["started_at"]) if ended is not None else 0.0
        return d
