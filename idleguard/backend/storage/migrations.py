"""
storage/migrations.py

Forward-only schema versions applied on top of init_schema() (v1).

  v2  sessions table for Sleep Guard reports
  v3  partial index for the open-incident queries behind /api/stats

Each step runs in its own transaction; a failing step is rolled back and the
error propagates so startup aborts on a half-migrated database.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from typing import Callable

from .database import Database

logger = logging.getLogger(__name__)

Migration = Callable[[sqlite3.Cursor], None]


def _create_sessions(cur: sqlite3.Cursor) -> None:
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS sessions (
            session_id           TEXT PRIMARY KEY,
            started_at           REAL NOT NULL,
            ended_at             REAL,
            battery_start        REAL NOT NULL,
            battery_end          REAL NOT NULL,
            total_upload_bytes   REAL NOT NULL DEFAULT 0,
            total_download_bytes REAL NOT NULL DEFAULT 0,
            peak_cpu             REAL NOT NULL DEFAULT 0,
            average_cpu          REAL NOT NULL DEFAULT 0,
            peak_threat_score    INTEGER NOT NULL DEFAULT 0,
            average_threat_score REAL NOT NULL DEFAULT 0,
            incident_count       INTEGER NOT NULL DEFAULT 0,
            has_anomalies        INTEGER NOT NULL DEFAULT 0
        )
        """
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_sessions_started_at ON sessions(started_at DESC)"
    )


def _index_open_incidents(cur: sqlite3.Cursor) -> None:
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_incidents_open "
        "ON incidents(opened_at DESC) WHERE is_resolved = 0"
    )


_MIGRATIONS: list[tuple[int, Migration]] = [
    (2, _create_sessions),
    (3, _index_open_incidents),
]


def schema_version(db: Database) -> int:
    row = db.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] if row and row[0] is not None else 0


def apply_migrations(db: Database) -> int:
    """Apply every pending step in version order. Returns the resulting version."""
    current = schema_version(db)
    pending = sorted(((v, fn) for v, fn in _MIGRATIONS if v > current), key=lambda p: p[0])
    if not pending:
        logger.debug("Schema up to date (version=%d)", current)
        return current

    cur = db.conn.cursor()
    for version, step in pending:
        label = getattr(step, "__name__", repr(step))
        try:
            step(cur)
            cur.execute(
                "INSERT OR REPLACE INTO schema_version (version, applied_at) VALUES (?, ?)",
                (version, time.time()),
            )
            db.commit()
        except Exception as exc:
            db.conn.rollback()
            logger.error("Migration v%d (%s) failed, rolled back: %s", version, label, exc)
            raise
        logger.info("Schema migrated to v%d (%s)", version, label)
        current = version
    return current
