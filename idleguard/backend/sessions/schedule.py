"""
sessions/schedule.py

SleepSchedule — a daily [start, end) wall-clock window.

When start > end the window wraps midnight (23:00 → 07:00). start == end is
treated as an empty window.
"""

from __future__ import annotations

from datetime import datetime


class SleepSchedule:
    def __init__(self, start_hour: int = 23, start_minute: int = 0, end_hour: int = 7, end_minute: int = 0) -> None:
        for name, value, upper in (
            ("start_hour", start_hour, 24),
            ("start_minute", start_minute, 60),
            ("end_hour", end_hour, 24),
            ("end_minute", end_minute, 60),
        ):
            if not 0 <= value < upper:
                raise ValueError(f"{name} must be in [0, {upper}) — got {value}")
        self.start_hour = start_hour
        self.start_minute = start_minute
        self.end_hour = end_hour
        self.end_minute = end_minute

    @classmethod
    def from_clock(cls, start: str, end: str) -> "SleepSchedule":
        """Build from 'HH:MM' strings, as stored in Settings."""
        sh, _, sm = start.partition(":")
        eh, _, em = end.partition(":")
        return cls(int(sh), int(sm or 0), int(eh), int(em or 0))

    @property
    def overnight(self) -> bool:
        return self._start > self._end

    @property
    def _start(self) -> int:
        return self.start_hour * 60 + self.start_minute

    @property
    def _end(self) -> int:
        return self.end_hour * 60 + self.end_minute

    def is_within(self, when: datetime) -> bool:
        minute_of_day = when.hour * 60 + when.minute
        if self.overnight:
            return minute_of_day >= self._start or minute_of_day < self._end
        return self._start <= minute_of_day < self._end

    def __repr__(self) -> str:
        return (
            f"SleepSchedule({self.start_hour:02d}:{self.start_minute:02d}"
            f"-{self.end_hour:02d}:{self.end_minute:02d})"
        )
