"""
engine/ticker.py

Ticker — fixed-interval asyncio task driving a synchronous callback.

Each call completes before the next sleep starts, so ticks never overlap.
An exception in the callback is logged and the loop keeps going.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)


class Ticker:
    def __init__(
        self,
        callback: Callable[[float], object],
        interval: float = 3.0,
        clock: Callable[[], float] = time.time,
        name: str = "ticker",
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive — got {interval}")
        self._callback = callback
        self.interval = interval
        self._clock = clock
        self.name = name
        self._task: asyncio.Task | None = None
        self.stats: dict[str, int] = {"ticks": 0, "errors": 0}

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the loop on the running event loop. No-op if already running."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        logger.info("Ticker %r started (interval=%.1fs)", self.name, self.interval)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to exit. No-op if not running."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Ticker %r stopped after %d tick(s)", self.name, self.stats["ticks"])

    async def _run(self) -> None:
        while True:
            try:
                self._callback(self._clock())
                self.stats["ticks"] += 1
            except Exception as exc:
                self.stats["errors"] += 1
                logger.exception("Ticker %r callback raised: %s", self.name, exc)
            await asyncio.sleep(self.interval)
