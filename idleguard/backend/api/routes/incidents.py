"""
api/routes/incidents.py

GET  /api/incidents                    — paginated list, newest first
GET  /api/incidents/{id}               — single incident
POST /api/incidents/{id}/acknowledge   — mark as seen
POST /api/incidents/{id}/resolve       — close manually

Open incidents live in the engine until they clear; the repository holds
everything that has been persisted. State changes go to both so the
response reflects the change even before the incident consumer catches up.
"""

from __future__ import annotations

import time
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from ...engine.engine import ThreatEngine
from ...storage.repository import IncidentRepository
from ..serializers import IncidentResponse, PaginatedIncidentsResponse

router = APIRouter(prefix="/incidents", tags=["incidents"])


def _get_repo() -> IncidentRepository:
    """FastAPI dependency — replaced in tests via app.dependency_overrides."""
    from ..main import get_repository
    return get_repository()


def _get_engine() -> ThreatEngine:
    from ..main import get_engine
    return get_engine()


@router.get("", response_model=PaginatedIncidentsResponse)
async def list_incidents(
    limit:         Annotated[int,          Query(ge=1, le=500)] = 100,
    offset:        Annotated[int,          Query(ge=0)]         = 0,
    incident_type: Annotated[str | None,   Query(alias="type")] = None,
    severity:      Annotated[str | None,   Query()]             = None,
    resolved:      Annotated[bool | None,  Query()]             = None,
    since:         Annotated[float | None, Query()]             = None,
    repo:          IncidentRepository = Depends(_get_repo),
) -> PaginatedIncidentsResponse:
    filters = dict(incident_type=incident_type, severity=severity, resolved=resolved, since=since)
    rows = repo.get_incidents(limit=limit, offset=offset, **filters)
    total = repo.get_incident_count(**filters)
    return PaginatedIncidentsResponse(
        items=[IncidentResponse(**r) for r in rows],
        total=total,
        limit=limit,
        offset=offset,
        has_more=(offset + limit) < total,
    )


@router.get("/{incident_id}", response_model=IncidentResponse)
async def get_incident(
    incident_id: str,
    repo: IncidentRepository = Depends(_get_repo),
) -> IncidentResponse:
    row = repo.get_incident_by_id(incident_id)
    if row is None:
        raise HTTPException(status_code=404, detail=f"Incident {incident_id!r} not found")
    return IncidentResponse(**row)


@router.post("/{incident_id}/acknowledge", response_model=IncidentResponse)
async def acknowledge_incident(
    incident_id: str,
    repo:   IncidentRepository = Depends(_get_repo),
    engine: ThreatEngine = Depends(_get_engine),
) -> IncidentResponse:
    live = engine.acknowledge_incident(incident_id)
    repo.update_incident_state(incident_id, acknowledged=True)
    return _current(incident_id, live, repo)


@router.post("/{incident_id}/resolve", response_model=IncidentResponse)
async def resolve_incident(
    incident_id: str,
    repo:   IncidentRepository = Depends(_get_repo),
    engine: ThreatEngine = Depends(_get_engine),
) -> IncidentResponse:
    now = time.time()
    live = engine.resolve_incident(incident_id, now)
    repo.update_incident_state(incident_id, resolved_at=now)
    return _current(incident_id, live, repo)


def _current(incident_id: str, live, repo: IncidentRepository) -> IncidentResponse:
    row = repo.get_incident_by_id(incident_id)
    if row is not None:
        return IncidentResponse(**row)
    if live is not None:
        return IncidentResponse(**live.to_dict())
    raise HTTPException(status_code=404, detail=f"Incident {incident_id!r} not found")
