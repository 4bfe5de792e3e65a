"""
api/routes/sessions.py

GET /api/sessions        — Sleep Guard session reports, newest first
GET /api/sessions/{id}   — single report
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from ...storage.repository import IncidentRepository
from ..serializers import SessionResponse

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _get_repo() -> IncidentRepository:
    from ..main import get_repository
    return get_repository()


@router.get("", response_model=list[SessionResponse])
async def list_sessions(
    limit:  Annotated[int, Query(ge=1, le=500)] = 30,
    offset: Annotated[int, Query(ge=0)]         = 0,
    repo:   IncidentRepository = Depends(_get_repo),
) -> list[SessionResponse]:
    return [SessionResponse(**r) for r in repo.get_sessions(limit=limit, offset=offset)]


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    repo: IncidentRepository = Depends(_get_repo),
) -> SessionResponse:
    row = repo.get_session_by_id(session_id)
    if row is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id!r} not found")
    return SessionResponse(**row)
