from __future__ import annotations

from fastapi import APIRouter, HTTPException

from compatlab.application.service import get_compat_service
from compatlab.core.schema import JobStatus
from compatlab.domain import StoreUnavailable, UnknownJob

router = APIRouter(tags=["jobs"])


@router.get("/status/{job_id}")
async def get_job_status(job_id: str) -> JobStatus:
    service = get_compat_service()
    try:
        return await service.get_job_status(job_id)
    except UnknownJob as exc:
        raise HTTPException(status_code=404, detail="job not found") from exc
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail="job store unavailable") from exc
