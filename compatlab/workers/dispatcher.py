"""Job queue and dispatcher.

Every submitted job is driven by exactly one worker coroutine:
``created -> running -> passed | failed | errored``. Workers for different
jobs run concurrently up to ``max_concurrent`` while the transitions of a
single job are strictly sequential inside its own coroutine.
"""
from __future__ import annotations

import asyncio
from typing import Any

from compatlab.application.metrics import MetricsAggregator
from compatlab.application.registry import JobRegistry
from compatlab.core.logs import get_logger
from compatlab.domain import (
    CompatError,
    ExecutionTicket,
    IllegalTransition,
    Job,
    JobState,
    JobSubmission,
    TestStepError,
    TestStepResult,
)
from compatlab.infrastructure import CompatibilityRunner, get_runner

logger = get_logger(__name__)


class JobDispatcher:
    def __init__(
        self,
        registry: JobRegistry,
        metrics: MetricsAggregator,
        *,
        runner: CompatibilityRunner | None = None,
        timeout: float | None = 600.0,
        max_concurrent: int = 4,
    ) -> None:
        self._registry = registry
        self._metrics = metrics
        self._runner = runner
        self._timeout = timeout
        self._slots = asyncio.Semaphore(max(1, max_concurrent))
        self._inflight: dict[str, asyncio.Task[Job | None]] = {}

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def submit(self, job_id: str, package_path: str) -> Job:
        """Create the job and schedule its execution."""

        job = await self._registry.create_job(job_id, package_path)
        self.add_job(JobSubmission(id=job.id, package_path=job.package_path))
        return job

    def add_job(self, submission: JobSubmission) -> asyncio.Task[Job | None]:
        """Schedule one worker for ``submission``.

        A second call for a job already in flight here returns the existing
        task. The caller guarantees the package file is fully written.
        """

        existing = self._inflight.get(submission.id)
        if existing is not None and not existing.done():
            logger.info("job_duplicate_dispatch", job_id=submission.id, source="inflight")
            return existing

        ticket = ExecutionTicket(job_id=submission.id)
        task = asyncio.create_task(self._execute(submission, ticket), name=f"job-{submission.id}")
        self._inflight[submission.id] = task
        task.add_done_callback(lambda done, job_id=submission.id: self._forget(job_id, done))
        return task

    def _forget(self, job_id: str, task: asyncio.Task[Job | None]) -> None:
        if self._inflight.get(job_id) is task:
            del self._inflight[job_id]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("job_worker_crashed", job_id=job_id, exc_info=exc)

    @staticmethod
    def _json_sanitise(value: Any) -> Any:
        if value is None or isinstance(value, (str, int, float, bool)):
            return value
        if isinstance(value, dict):
            return {str(key): JobDispatcher._json_sanitise(val) for key, val in value.items()}
        if isinstance(value, (list, tuple, set, frozenset)):
            return [JobDispatcher._json_sanitise(item) for item in value]
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return str(value)

    async def _execute(self, submission: JobSubmission, ticket: ExecutionTicket) -> Job | None:
        log = logger.bind(job_id=submission.id)
        async with self._slots:
            try:
                await self._registry.transition(submission.id, JobState.RUNNING, ticket=ticket)
            except IllegalTransition as exc:
                log.info("job_duplicate_dispatch", source="registry", detail=str(exc))
                return None
            except CompatError:
                log.exception("job_start_failed")
                return None

            log.info("job_started", package_path=submission.package_path)
            state, result, issues = await self._outcome(submission, log)

            try:
                job = await self._registry.transition(submission.id, state, result, ticket=ticket)
                await self._metrics.record_outcome(state)
                for issue in issues:
                    await self._metrics.record_compat_issue(issue)
            except CompatError:
                log.exception("job_finalize_failed", state=state.value)
                return None

            log.info("job_finished", state=state.value, issues=len(issues))
            return job

    async def _outcome(self, submission: JobSubmission, log: Any) -> tuple[JobState, dict[str, Any], list[str]]:
        runner = self._runner or get_runner()
        deadline = asyncio.timeout(self._timeout)
        try:
            async with deadline:
                step = await runner.run(submission.package_path)
        except TimeoutError as exc:
            if not deadline.expired():
                log.exception("job_step_crashed")
                return JobState.ERRORED, {"error": f"{type(exc).__name__}: {exc}"}, []
            log.warning("job_step_timeout", timeout=self._timeout)
            return JobState.ERRORED, {"error": f"test step exceeded {self._timeout}s deadline"}, []
        except TestStepError as exc:
            log.warning("job_step_error", error=str(exc))
            return JobState.ERRORED, {"error": str(exc)}, []
        except Exception as exc:
            log.exception("job_step_crashed")
            return JobState.ERRORED, {"error": f"{type(exc).__name__}: {exc}"}, []

        if not isinstance(step, TestStepResult):
            log.error("job_step_bad_result", result_type=type(step).__name__)
            return JobState.ERRORED, {"error": "test step returned an unexpected result"}, []
        issues = [str(issue) for issue in step.issues] if not step.passed else []
        return step.state, self._json_sanitise(step.to_record()), issues

    async def wait_idle(self) -> None:
        """Wait until every in-flight worker has reached a terminal state."""

        while self._inflight:
            await asyncio.gather(*list(self._inflight.values()), return_exceptions=True)

    async def close(self) -> None:
        await self.wait_idle()
