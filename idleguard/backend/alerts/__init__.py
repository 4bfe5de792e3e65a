"""alerts/__init__.py"""
from .gate import AlertGate
from .models import Incident, IncidentSeverity, IncidentType
from .notifier import LogNotifier, WebhookNotifier

__all__ = [
    "AlertGate",
    "Incident",
    "IncidentSeverity",
    "IncidentType",
    "LogNotifier",
    "WebhookNotifier",
]
