"""
storage/database.py

SQLite connection and the v1 schema for IdleGuard.

The connection is shared by the incident consumer, Sleep Guard and the API
handlers, all on the event loop thread, hence check_same_thread=False. WAL
lets the API read while a write is in flight; busy_timeout turns a brief
lock into a wait instead of SQLITE_BUSY.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import time

logger = logging.getLogger(__name__)

_CURRENT_SCHEMA_VERSION = 1

_PRAGMAS = (
    "journal_mode=WAL",
    "foreign_keys=ON",
    "busy_timeout=5000",
    "synchronous=NORMAL",
)

IN_MEMORY = ":memory:"


class Database:
    """
    Owns one sqlite3 connection with dict-like rows.

        db = Database(settings.DB_PATH)
        db.init_schema()
        apply_migrations(db)
        repo = IncidentRepository(db)

    Database(":memory:") gives a throwaway database for tests.
    """

    def __init__(self, db_path: str = "data/idleguard.db") -> None:
        self.db_path = db_path
        if db_path != IN_MEMORY:
            os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        for pragma in _PRAGMAS:
            self.conn.execute(f"PRAGMA {pragma}")
        self.conn.commit()
        logger.info("Database opened at %r", db_path)

    def init_schema(self) -> None:
        """Create the v1 tables and indexes if they don't already exist."""
        cur = self.conn.cursor()

        cur.executescript("""
            CREATE TABLE IF NOT EXISTS incidents (
                incident_id            TEXT PRIMARY KEY,
                type                   TEXT NOT NULL,
                severity               TEXT NOT NULL,
                opened_at              REAL NOT NULL,
                closed_at              REAL,
                is_resolved            INTEGER NOT NULL DEFAULT 0,
                is_acknowledged        INTEGER NOT NULL DEFAULT 0,
                upload_bps             REAL NOT NULL DEFAULT 0,
                download_bps           REAL NOT NULL DEFAULT 0,
                cpu_percent            REAL NOT NULL DEFAULT 0,
                battery_drain_per_hour REAL NOT NULL DEFAULT 0,
                thermal_level          INTEGER NOT NULL DEFAULT 0,
                threat_score           INTEGER NOT NULL DEFAULT 0,
                hourly_upload_bytes    REAL NOT NULL DEFAULT 0,
                hourly_download_bytes  REAL NOT NULL DEFAULT 0,
                summary                TEXT NOT NULL,
                details                TEXT NOT NULL,
                factors                TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS schema_version (
                version    INTEGER PRIMARY KEY,
                applied_at REAL NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_incidents_opened_at
                ON incidents(opened_at DESC);
            CREATE INDEX IF NOT EXISTS idx_incidents_type
                ON incidents(type);
            CREATE INDEX IF NOT EXISTS idx_incidents_severity
                ON incidents(severity);
        """)

        cur.execute(
            "INSERT OR IGNORE INTO schema_version (version, applied_at) VALUES (?, ?)",
            (_CURRENT_SCHEMA_VERSION, time.time()),
        )
        self.conn.commit()
        logger.info("Schema initialised (version=%d)", _CURRENT_SCHEMA_VERSION)

    def close(self) -> None:
        """Flush and close the SQLite connection."""
        try:
            self.conn.commit()
            self.conn.close()
            logger.info("Database closed (%r)", self.db_path)
        except Exception as exc:
            logger.warning("Error closing database: %s", exc)

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        return self.conn.execute(sql, params)

    def commit(self) -> None:
        self.conn.commit()
