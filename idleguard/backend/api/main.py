"""
api/main.py

FastAPI application factory. Host state (engine, threshold store,
repository, extra stats) is injected with the module-level set_*()
functions before the server starts; routes reach it through get_*().
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.websockets import WebSocketDisconnect

from .routes import incidents as incidents_router
from .routes import sessions as sessions_router
from .routes import status as status_router
from .routes import thresholds as thresholds_router
from .ws_manager import ws_manager

logger = logging.getLogger(__name__)

_repository = None
_engine = None
_threshold_store = None
_pipeline_stats_ref: dict = {}


def set_repository(repo) -> None:
    global _repository
    _repository = repo


def get_repository():
    if _repository is None:
        raise RuntimeError("Repository not initialised — call set_repository() first")
    return _repository


def set_engine(engine) -> None:
    global _engine
    _engine = engine


def get_engine():
    if _engine is None:
        raise RuntimeError("Engine not initialised — call set_engine() first")
    return _engine


def set_threshold_store(store) -> None:
    global _threshold_store
    _threshold_store = store


def get_threshold_store():
    if _threshold_store is None:
        raise RuntimeError("Threshold store not initialised — call set_threshold_store() first")
    return _threshold_store


def set_pipeline_stats(stats_dict: dict) -> None:
    global _pipeline_stats_ref
    _pipeline_stats_ref = stats_dict


def get_pipeline_stats() -> dict:
    return dict(_pipeline_stats_ref)


async def _serve_channel(websocket: WebSocket, channel: str, initial: dict | None = None) -> None:
    await ws_manager.connect(websocket, channel, initial)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await ws_manager.disconnect(websocket, channel)


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("FastAPI startup")
        yield
        logger.info("FastAPI shutdown")

    app = FastAPI(
        title="IdleGuard — Idle Device Anomaly Monitor",
        version="1.0.0",
        description="Idle-aware threat scoring for unattended devices",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(status_router.router,     prefix="/api")
    app.include_router(thresholds_router.router, prefix="/api")
    app.include_router(incidents_router.router,  prefix="/api")
    app.include_router(sessions_router.router,   prefix="/api")

    @app.websocket("/ws/status")
    async def ws_status(websocket: WebSocket):
        initial = _engine.status().to_dict() if _engine is not None else None
        await _serve_channel(websocket, "status", initial)

    @app.websocket("/ws/alerts")
    async def ws_alerts(websocket: WebSocket):
        await _serve_channel(websocket, "alerts")

    @app.get("/health")
    async def health() -> dict:
        monitoring = _engine.monitoring if _engine is not None else False
        return {
            "status": "ok",
            "monitoring": monitoring,
            "ws_connections": ws_manager.all_counts(),
        }

    return app
