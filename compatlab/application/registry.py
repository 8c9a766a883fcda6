"""Job lifecycle state machine persisted through the store."""
from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from compatlab.core.retry import RetryPolicy
from compatlab.domain import (
    LEGAL_TRANSITIONS,
    DuplicateId,
    ExecutionTicket,
    IllegalTransition,
    Job,
    JobState,
    UnknownJob,
)
from compatlab.infrastructure import Store

JOB_KEY_PREFIX = "job:"


def job_key(job_id: str) -> str:
    return f"{JOB_KEY_PREFIX}{job_id}"


class JobRegistry:
    """Creates jobs and enforces their one-directional state transitions.

    Only the worker holding a job's execution ticket calls :meth:`transition`
    for that job, so read-check-write here needs no lock.
    """

    def __init__(self, store: Store, *, retry: RetryPolicy | None = None) -> None:
        self._store = store
        self._retry = retry or RetryPolicy()

    @staticmethod
    def _utcnow_iso() -> str:
        return datetime.now(UTC).isoformat()

    async def _load(self, job_id: str) -> Job:
        record = await self._retry.call(self._store.get, job_key(job_id), None)
        if record is None:
            raise UnknownJob(job_id)
        return Job.from_record(record)

    async def _save(self, job: Job) -> None:
        await self._retry.call(self._store.set, job_key(job.id), job.to_record())

    async def create_job(self, job_id: str, package_path: str) -> Job:
        existing = await self._retry.call(self._store.get, job_key(job_id), None)
        if existing is not None:
            raise DuplicateId(job_id)
        job = Job(id=job_id, package_path=str(package_path), created_at=self._utcnow_iso())
        await self._save(job)
        return job

    async def get(self, job_id: str) -> Job:
        return await self._load(job_id)

    async def transition(
        self,
        job_id: str,
        new_state: JobState | str,
        result: dict[str, Any] | None = None,
        *,
        ticket: ExecutionTicket | None = None,
    ) -> Job:
        target = JobState(new_state)
        job = await self._load(job_id)

        if target not in LEGAL_TRANSITIONS[job.state]:
            raise IllegalTransition(job_id, job.state.value, target.value)
        if result is not None and not target.is_terminal:
            raise IllegalTransition(job_id, job.state.value, target.value, "result only allowed on terminal state")
        if ticket is not None and ticket.job_id != job_id:
            raise IllegalTransition(job_id, job.state.value, target.value, "ticket issued for another job")

        now = self._utcnow_iso()
        if target is JobState.RUNNING:
            job.started_at = now
            job.ticket = ticket.token if ticket else None
        else:
            if job.ticket is not None and (ticket is None or ticket.token != job.ticket):
                raise IllegalTransition(job_id, job.state.value, target.value, "caller does not hold the ticket")
            job.finished_at = now
            job.result = result

        job.state = target
        await self._save(job)
        return job
