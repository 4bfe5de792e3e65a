"""
engine/levels.py

Score → ThreatLevel mapping and the hysteresis-gated level state machine.

    NORMAL   [0, 20)
    WARNING  [20, 45)
    ALERT    [45, 70)
    CRITICAL [70, 100]

The state machine always exposes the latest score immediately; only the
discrete level label is debounced. A level change is accepted only if at
least `cooldown_seconds` have passed since the last accepted change (or since
the machine started), otherwise the previous level is held.
"""

from __future__ import annotations

import logging

from ..models import ThreatLevel
from .models import LevelTransition

logger = logging.getLogger(__name__)

# (lower bound inclusive, level), scanned from the top
_LEVEL_FLOORS: tuple[tuple[int, ThreatLevel], ...] = (
    (70, ThreatLevel.CRITICAL),
    (45, ThreatLevel.ALERT),
    (20, ThreatLevel.WARNING),
    (0,  ThreatLevel.NORMAL),
)


def level_for_score(score: int) -> ThreatLevel:
    """Pure mapping; scores outside [0, 100] are clamped first."""
    s = max(0, min(100, int(score)))
    for floor, level in _LEVEL_FLOORS:
        if s >= floor:
            return level
    return ThreatLevel.NORMAL  # unreachable: floor 0 always matches


class LevelStateMachine:
    """
    Args:
        cooldown_seconds: minimum dwell time between accepted level changes.
        started_at:       reference time for the first change; when None the
                          first update() call sets it.
    """

    def __init__(self, cooldown_seconds: float = 60.0, started_at: float | None = None) -> None:
        self.cooldown_seconds = cooldown_seconds
        self._level = ThreatLevel.NORMAL
        self._score = 0
        self._last_change_at = started_at
        self.held_count = 0

    def anchor(self, now: float) -> None:
        """Set the dwell reference if nothing has set it yet."""
        if self._last_change_at is None:
            self._last_change_at = now

    def update(self, score: int, now: float) -> LevelTransition | None:
        """
        Record *score* and return a LevelTransition if the level changed.

        Returns None when the level is unchanged or the change was held back.
        """
        self._score = max(0, min(100, int(score)))
        self.anchor(now)

        candidate = level_for_score(self._score)
        if candidate == self._level:
            return None

        since = now - self._last_change_at
        if since < self.cooldown_seconds:
            self.held_count += 1
            logger.debug(
                "Level change %s→%s held (score=%d, %.0fs of %.0fs dwell)",
                self._level.value, candidate.value, self._score, since, self.cooldown_seconds,
            )
            return None

        transition = LevelTransition(
            previous=self._level, current=candidate, score=self._score, at=now,
        )
        self._level = candidate
        self._last_change_at = now
        return transition

    @property
    def level(self) -> ThreatLevel:
        return self._level

    @property
    def score(self) -> int:
        return self._score

    @property
    def candidate_level(self) -> ThreatLevel:
        """What the level would be without hysteresis."""
        return level_for_score(self._score)

    @property
    def last_change_at(self) -> float | None:
        return self._last_change_at
