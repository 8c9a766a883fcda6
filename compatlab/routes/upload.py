from __future__ import annotations

import uuid

from fastapi import APIRouter, File, HTTPException, UploadFile

from compatlab.application.service import get_compat_service
from compatlab.application.uploads import save_upload, wait_until_visible
from compatlab.core.schema import SubmissionReceipt
from compatlab.domain import DuplicateId, StoreUnavailable, TransientFailure

router = APIRouter(tags=["upload"])


@router.post("/upload")
async def upload_package(package: UploadFile | None = File(default=None)) -> SubmissionReceipt:
    """Store an uploaded package and submit it for a compatibility run."""
    if package is None or not package.filename:
        raise HTTPException(status_code=400, detail="No files were uploaded.")

    service = get_compat_service()
    settings = service.settings
    job_id = uuid.uuid4().hex

    try:
        path = save_upload(settings.uploads_root, job_id, package.filename, package.file)
    finally:
        await package.close()

    try:
        await wait_until_visible(
            path,
            attempts=settings.upload_visibility_attempts,
            delay=settings.upload_visibility_delay,
        )
        status = await service.submit(job_id, str(path))
    except TransientFailure as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail="job store unavailable") from exc
    except DuplicateId as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    return SubmissionReceipt(
        id=status.id,
        state=status.state,
        status_url=f"/status/{status.id}",
        filename=path.name,
    )
