"""sources/__init__.py"""
from .sampler import SystemMetricSource

__all__ = ["SystemMetricSource"]
