from __future__ import annotations

from fastapi import APIRouter, Query

from compatlab.application.service import get_compat_service
from compatlab.core.schema import AggregateStats

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("")
async def get_aggregate_stats() -> AggregateStats:
    service = get_compat_service()
    return await service.get_aggregate_stats()


@router.get("/issues")
async def get_compat_issues() -> dict:
    service = get_compat_service()
    issues = await service.get_compat_issue_frequencies()
    return {"items": [issue.model_dump() for issue in issues]}


@router.get("/pulse")
async def get_recent_pulse(n: int = Query(default=24, ge=1, le=10000)) -> dict:
    service = get_compat_service()
    entries = await service.get_recent_pulse(n)
    return {"items": [entry.model_dump() for entry in entries]}
