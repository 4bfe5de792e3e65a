"""
tests/test_notifier.py

Tests for LogNotifier and WebhookNotifier. The webhook talks to an
httpx.MockTransport instead of the network.
"""

from __future__ import annotations

import json
import logging

import httpx
import pytest

from idleguard.backend.alerts.notifier import LogNotifier, WebhookNotifier
from idleguard.backend.engine.models import NotificationRequest
from idleguard.backend.models import ThreatLevel


def make_request(severity: ThreatLevel = ThreatLevel.ALERT) -> NotificationRequest:
    return NotificationRequest(
        title=severity.message,
        body="250.0 MB uploaded in the last hour",
        severity=severity,
        identity="total_upload",
        timestamp=1000.0,
    )


def webhook_with(handler) -> WebhookNotifier:
    notifier = WebhookNotifier("http://hooks.local/notify")
    notifier._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return notifier


class TestLogNotifier:

    @pytest.mark.asyncio
    async def test_critical_logged_at_critical(self, caplog):
        caplog.set_level(logging.WARNING)
        assert await LogNotifier().send(make_request(ThreatLevel.CRITICAL)) is True
        assert caplog.records[-1].levelno == logging.CRITICAL
        assert "total_upload" not in caplog.text
        assert "250.0 MB" in caplog.text


class TestWebhookNotifier:

    @pytest.mark.asyncio
    async def test_disabled_without_url(self):
        notifier = WebhookNotifier("")
        assert notifier.enabled is False
        assert await notifier.send(make_request()) is False
        assert notifier.stats == {"sent": 0, "failed": 0}

    @pytest.mark.asyncio
    async def test_posts_json_payload(self):
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(204)

        notifier = webhook_with(handler)
        assert await notifier.send(make_request()) is True
        assert seen[0]["identity"] == "total_upload"
        assert seen[0]["severity"] == "ALERT"
        assert notifier.stats["sent"] == 1
        await notifier.close()

    @pytest.mark.asyncio
    async def test_http_error_returns_false(self):
        notifier = webhook_with(lambda request: httpx.Response(500))
        assert await notifier.send(make_request()) is False
        assert notifier.stats["failed"] == 1
        await notifier.close()

    @pytest.mark.asyncio
    async def test_transport_error_returns_false(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        notifier = webhook_with(handler)
        assert await notifier.send(make_request()) is False
        assert notifier.stats["failed"] == 1
        await notifier.close()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        notifier = WebhookNotifier("http://hooks.local/notify")
        await notifier.close()
        await notifier.close()
