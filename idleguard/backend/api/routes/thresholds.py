"""
api/routes/thresholds.py

GET  /api/thresholds        — all six thresholds with their bounds
PUT  /api/thresholds        — change one threshold (value and/or enabled)
POST /api/thresholds/reset  — restore defaults

The engine reads the store every tick, so edits apply on the next tick.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from ...thresholds.store import ThresholdStore
from ..serializers import ThresholdResponse, ThresholdUpdateRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/thresholds", tags=["thresholds"])


def _get_store() -> ThresholdStore:
    """FastAPI dependency — replaced in tests via app.dependency_overrides."""
    from ..main import get_threshold_store
    return get_threshold_store()


@router.get("", response_model=list[ThresholdResponse])
async def list_thresholds(store: ThresholdStore = Depends(_get_store)) -> list[ThresholdResponse]:
    return [ThresholdResponse(**t.to_dict()) for t in store.all()]


@router.put("", response_model=ThresholdResponse)
async def update_threshold(
    update: ThresholdUpdateRequest,
    store: ThresholdStore = Depends(_get_store),
) -> ThresholdResponse:
    try:
        threshold = store.update(update.metric, value=update.value, enabled=update.enabled)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return ThresholdResponse(**threshold.to_dict())


@router.post("/reset", response_model=list[ThresholdResponse])
async def reset_thresholds(store: ThresholdStore = Depends(_get_store)) -> list[ThresholdResponse]:
    return [ThresholdResponse(**t.to_dict()) for t in store.reset()]
