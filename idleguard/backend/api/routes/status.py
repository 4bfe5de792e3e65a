"""
api/routes/status.py

GET  /api/status       — latest published EngineStatus
GET  /api/activity     — recent activity log, newest first
POST /api/interaction  — user touched the device; leave idle now
GET  /api/stats        — incident summary + engine / pipeline counters
"""

from __future__ import annotations

import time
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from ...engine.engine import ThreatEngine
from ...metrics import METRICS
from ...storage.repository import IncidentRepository
from ..serializers import ActivityEntryResponse, InteractionResponse, StatsResponse, StatusResponse

router = APIRouter(tags=["status"])


def _get_engine() -> ThreatEngine:
    """FastAPI dependency — replaced in tests via app.dependency_overrides."""
    from ..main import get_engine
    return get_engine()


def _get_repo() -> IncidentRepository:
    from ..main import get_repository
    return get_repository()


@router.get("/status", response_model=StatusResponse)
async def read_status(engine: ThreatEngine = Depends(_get_engine)) -> StatusResponse:
    return StatusResponse(**engine.status().to_dict())


@router.get("/activity", response_model=list[ActivityEntryResponse])
async def read_activity(
    limit:  Annotated[int, Query(ge=1, le=50)] = 50,
    engine: ThreatEngine = Depends(_get_engine),
) -> list[ActivityEntryResponse]:
    return [ActivityEntryResponse(**e.to_dict()) for e in engine.recent_activity()[:limit]]


@router.post("/interaction", response_model=InteractionResponse)
async def register_interaction(engine: ThreatEngine = Depends(_get_engine)) -> InteractionResponse:
    now = time.time()
    engine.register_interaction(now)
    return InteractionResponse(registered_at=now, is_idle=False)


@router.get("/stats", response_model=StatsResponse)
async def read_stats(
    engine: ThreatEngine = Depends(_get_engine),
    repo:   IncidentRepository = Depends(_get_repo),
) -> StatsResponse:
    from ..main import get_pipeline_stats
    summary = repo.get_incident_summary()
    return StatsResponse(
        **summary,
        engine_stats={**get_pipeline_stats(), "sampler": METRICS.as_dict(), "engine": dict(engine.stats)},
    )
