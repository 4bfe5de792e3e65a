"""sessions/__init__.py"""
from .models import MonitoringSession
from .schedule import SleepSchedule
from .tracker import SessionTracker

__all__ = ["MonitoringSession", "SleepSchedule", "SessionTracker"]
