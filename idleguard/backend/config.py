"""
backend/config.py

Application configuration via Pydantic Settings.
All values can be overridden with environment variables or a .env file.

Quick start — create a .env file in your project root:
    TICK_INTERVAL_SECONDS=3
    IDLE_THRESHOLD_SECONDS=120
    WEBHOOK_URL=http://localhost:9000/notify
    SLEEP_GUARD_ENABLED=true
"""

from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Cadence
    TICK_INTERVAL_SECONDS: float = 3.0
    SAMPLE_INTERVAL_SECONDS: float = 1.0

    # Idle detection
    IDLE_THRESHOLD_SECONDS: float = 60.0
    IDLE_CPU_THRESHOLD: float = 15.0               # percent
    IDLE_NETWORK_THRESHOLD_BPS: float = 50 * 1024  # 50 KB/s

    # Baseline learning
    BASELINE_COLD_START_SAMPLES: int = 30
    BASELINE_ALPHA: float = 0.1
    BASELINE_MULTIPLIER: float = 5.0

    # Level hysteresis + alert gating
    LEVEL_CHANGE_COOLDOWN_SECONDS: float = 60.0
    ALERT_COOLDOWN_SECONDS: float = 300.0
    INCIDENT_DEDUP_SECONDS: float = 60.0

    # Rolling totals + activity log
    ROLLING_WINDOW_SECONDS: float = 3600.0
    ACTIVITY_LOG_MAX_ENTRIES: int = 50

    # Battery drain estimation (sampler)
    BATTERY_HISTORY_SECONDS: float = 300.0

    # Queues
    INCIDENT_QUEUE_SIZE: int = 500
    NOTIFICATION_QUEUE_SIZE: int = 100

    # Storage
    DB_PATH: str = "data/idleguard.db"
    THRESHOLDS_PATH: str = "data/thresholds.json"

    # Sleep Guard schedule (overnight by default)
    SLEEP_GUARD_ENABLED: bool = False
    SLEEP_GUARD_START: str = "23:00"
    SLEEP_GUARD_END: str = "07:00"

    # API
    API_ENABLED: bool = True
    API_HOST: str = "127.0.0.1"
    API_PORT: int = 8765

    # Notifications
    WEBHOOK_URL: str = ""
    WEBHOOK_TIMEOUT_SECONDS: float = 5.0

    # Logging
    LOG_LEVEL: str = "INFO"

    @field_validator("SLEEP_GUARD_START", "SLEEP_GUARD_END")
    @classmethod
    def parse_clock(cls, v: str) -> str:
        v = v.strip()
        hour, _, minute = v.partition(":")
        if not (hour.isdigit() and minute.isdigit()):
            raise ValueError(f"expected HH:MM, got {v!r}")
        if not (0 <= int(hour) < 24 and 0 <= int(minute) < 60):
            raise ValueError(f"clock value out of range: {v!r}")
        return f"{int(hour):02d}:{int(minute):02d}"


settings = Settings()
