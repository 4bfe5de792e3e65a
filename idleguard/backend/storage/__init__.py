"""storage/__init__.py"""
from .database import Database
from .repository import IncidentRepository

__all__ = ["Database", "IncidentRepository"]
