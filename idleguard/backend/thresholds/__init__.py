"""thresholds/__init__.py"""
from .models import AlertThreshold, ThresholdMetric, ThresholdSet, default_thresholds
from .store import ThresholdStore

__all__ = ["AlertThreshold", "ThresholdMetric", "ThresholdSet", "ThresholdStore", "default_thresholds"]
