"""
aggregation/__init__.py

Public API for the aggregation sub-package.
"""

from .latest import LatestSampleStore
from .rolling_window import RollingWindowTotal

__all__ = [
    "LatestSampleStore",
    "RollingWindowTotal",
]
