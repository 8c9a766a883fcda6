from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel

from compatlab.domain import Job


class AggregateStats(BaseModel):
    total: int = 0
    passed: int = 0
    failed: int = 0
    errors: int = 0
    partial: bool = False


class CompatIssue(BaseModel):
    text: str
    count: int


class PulseEntry(BaseModel):
    time: str
    total: int = 0
    passed: int = 0
    failed: int = 0
    errors: int = 0


class JobStatus(BaseModel):
    id: str
    package_path: str
    state: Literal["created", "running", "passed", "failed", "errored"]
    created_at: str | None = None
    started_at: str | None = None
    finished_at: str | None = None
    result: dict[str, Any] | None = None

    @classmethod
    def from_job(cls, job: Job) -> "JobStatus":
        return cls(
            id=job.id,
            package_path=job.package_path,
            state=job.state.value,
            created_at=job.created_at,
            started_at=job.started_at,
            finished_at=job.finished_at,
            result=job.result,
        )


class SubmissionReceipt(BaseModel):
    id: str
    state: str
    status_url: str
    filename: str | None = None