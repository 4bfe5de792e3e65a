"""
backend/pipeline.py

asyncio.Queue instances between the engine and the async workers, plus the
ring-buffer put helpers.

  incident_queue      — Incident copies from the alert gate → repository
  notification_queue  — NotificationRequests → notifiers + /ws/alerts

The engine's sinks are plain callables invoked inside tick(), so they use
offer() (synchronous); coroutines use safe_put(). Both drop the *oldest*
item when the queue is full rather than blocking the producer.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .metrics import METRICS

logger = logging.getLogger(__name__)

# Lazily initialised so tests can create fresh queues without import side effects.
# Call init_queues() once at startup (done inside main.py).

incident_queue: asyncio.Queue | None = None
notification_queue: asyncio.Queue | None = None


def init_queues(incident_size: int = 500, notification_size: int = 100) -> None:
    """Must be called from within a running asyncio event loop."""
    global incident_queue, notification_queue
    incident_queue = asyncio.Queue(maxsize=incident_size)
    notification_queue = asyncio.Queue(maxsize=notification_size)
    logger.info(
        "Pipeline queues initialised — sizes: incident=%d notification=%d",
        incident_size,
        notification_size,
    )


def offer(queue: asyncio.Queue, item: Any) -> bool:
    """
    Synchronous ring-buffer enqueue for event-loop-thread callers.

    Returns False only if the item could not be enqueued at all.
    """
    if queue.full():
        try:
            queue.get_nowait()
            METRICS.queue_items_dropped.inc()
            logger.warning(
                "Queue full (%d/%d) — oldest item dropped to make room",
                queue.qsize(),
                queue.maxsize,
            )
        except asyncio.QueueEmpty:
            pass

    try:
        queue.put_nowait(item)
        return True
    except asyncio.QueueFull:
        METRICS.queue_items_dropped.inc()
        logger.error("offer: queue still full after drop — item lost")
        return False


async def safe_put(queue: asyncio.Queue, item: Any) -> bool:
    """Coroutine flavour of offer()."""
    return offer(queue, item)
