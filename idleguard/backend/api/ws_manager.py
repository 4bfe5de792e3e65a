"""
api/ws_manager.py

Named WebSocket broadcast channels.

    "status"  EngineStatus JSON, at most once per tick
    "alerts"  NotificationRequest JSON as notifications are dispatched

A socket that fails a send is dropped from its channel; clients are expected
to reconnect. Only used from coroutines on the event loop thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WebSocketManager:
    def __init__(self) -> None:
        self._channels: dict[str, set[WebSocket]] = defaultdict(set)

    async def connect(self, websocket: WebSocket, channel: str, initial: dict | None = None) -> None:
        """Accept *websocket* onto *channel*, optionally greeting it with *initial*."""
        await websocket.accept()
        if initial is not None:
            await websocket.send_text(_encode(initial))
        self._channels[channel].add(websocket)
        logger.debug("WS +1 on %r (now %d)", channel, len(self._channels[channel]))

    async def disconnect(self, websocket: WebSocket, channel: str) -> None:
        if websocket in self._channels[channel]:
            self._channels[channel].discard(websocket)
            logger.debug("WS -1 on %r (now %d)", channel, len(self._channels[channel]))

    async def broadcast(self, channel: str, message: dict) -> int:
        """Send *message* to every client on *channel*. Returns the delivered count."""
        clients = list(self._channels[channel])
        if not clients:
            return 0

        payload = _encode(message)
        results = await asyncio.gather(
            *(ws.send_text(payload) for ws in clients), return_exceptions=True,
        )
        delivered = 0
        for ws, outcome in zip(clients, results):
            if isinstance(outcome, BaseException):
                logger.debug("Dropping WS on %r after failed send: %s", channel, outcome)
                self._channels[channel].discard(ws)
            else:
                delivered += 1
        return delivered

    async def close_all(self) -> None:
        """Close every socket on every channel (shutdown)."""
        for channel, clients in self._channels.items():
            for ws in list(clients):
                try:
                    await ws.close()
                except Exception as exc:
                    logger.debug("WS close failed on %r: %s", channel, exc)
            clients.clear()

    def connection_count(self, channel: str) -> int:
        return len(self._channels.get(channel, ()))

    def all_counts(self) -> dict[str, int]:
        return {ch: len(conns) for ch, conns in self._channels.items()}


def _encode(message: dict) -> str:
    # default=str covers datetimes and enums that slipped through to_dict()
    return json.dumps(message, default=str)


ws_manager = WebSocketManager()
