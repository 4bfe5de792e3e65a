"""
alerts/notifier.py

Outbound delivery of NotificationRequests.

LogNotifier      — always on; writes the alert to the log
WebhookNotifier  — POSTs {title, body, severity, ...} as JSON when a URL is set

Delivery is one attempt, fire-and-forget: failures are logged and reported
as False, never raised.
"""

from __future__ import annotations

import logging

import httpx

from ..engine.models import NotificationRequest
from ..models import ThreatLevel

logger = logging.getLogger(__name__)


class LogNotifier:
    async def send(self, request: NotificationRequest) -> bool:
        level = logging.CRITICAL if request.severity == ThreatLevel.CRITICAL else logging.WARNING
        logger.log(level, "NOTIFY [%s] %s — %s", request.severity.value, request.title, request.body)
        return True


class WebhookNotifier:
    """
    Args:
        url:     endpoint to POST to; empty disables the notifier.
        timeout: per-request timeout in seconds.
    """

    def __init__(self, url: str, timeout: float = 5.0) -> None:
        self.url = url
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None
        self.stats: dict[str, int] = {"sent": 0, "failed": 0}

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    async def send(self, request: NotificationRequest) -> bool:
        if not self.enabled:
            logger.debug("Webhook URL not configured — skipping notification")
            return False
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        try:
            response = await self._client.post(self.url, json=request.to_dict())
            response.raise_for_status()
        except Exception as exc:
            self.stats["failed"] += 1
            logger.error("Webhook notification failed: %s", exc)
            return False
        self.stats["sent"] += 1
        logger.info("Webhook notification sent (%s)", request.identity)
        return True

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
