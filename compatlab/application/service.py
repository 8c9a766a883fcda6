"""Application service layer exposed to the HTTP adapter."""
from __future__ import annotations

from compatlab.application.metrics import MetricsAggregator
from compatlab.application.registry import JobRegistry
from compatlab.core.config import Settings
from compatlab.core.logs import get_logger
from compatlab.core.retry import RetryPolicy
from compatlab.core.schema import AggregateStats, CompatIssue, JobStatus, PulseEntry
from compatlab.domain import StoreUnavailable
from compatlab.infrastructure import CommandRunner, CompatibilityRunner, Store, configure_runner, create_store
from compatlab.workers.dispatcher import JobDispatcher
from compatlab.workers.pulse import PulseRecorder

logger = get_logger(__name__)


class CompatService:
    """Wires the store, registry, aggregator, dispatcher and pulse recorder."""

    def __init__(
        self,
        store: Store,
        settings: Settings | None = None,
        *,
        runner: CompatibilityRunner | None = None,
    ) -> None:
        self.settings = settings or Settings()
        retry = RetryPolicy(attempts=self.settings.store_retry_attempts, wait=self.settings.store_retry_wait)
        self.store = store
        self.registry = JobRegistry(store, retry=retry)
        self.metrics = MetricsAggregator(store, retry=retry)
        self.dispatcher = JobDispatcher(
            self.registry,
            self.metrics,
            runner=runner,
            timeout=self.settings.test_timeout,
            max_concurrent=self.settings.max_concurrent_jobs,
        )
        self.pulse = PulseRecorder(store, self.metrics, interval=self.settings.pulse_interval, retry=retry)

    # ------------------------------------------------------------------
    # submission
    # ------------------------------------------------------------------
    async def submit(self, job_id: str, package_path: str) -> JobStatus:
        job = await self.dispatcher.submit(job_id, package_path)
        return JobStatus.from_job(job)

    # ------------------------------------------------------------------
    # reporting
    # ------------------------------------------------------------------
    async def get_job_status(self, job_id: str) -> JobStatus:
        job = await self.registry.get(job_id)
        return JobStatus.from_job(job)

    async def get_aggregate_stats(self) -> AggregateStats:
        return await self.metrics.snapshot(best_effort=True)

    async def get_compat_issue_frequencies(self) -> list[CompatIssue]:
        try:
            return await self.metrics.list_issues()
        except StoreUnavailable as exc:
            logger.warning("issues_read_failed", error=str(exc))
            return []

    async def get_recent_pulse(self, n: int) -> list[PulseEntry]:
        try:
            return await self.pulse.recent(n)
        except StoreUnavailable as exc:
            logger.warning("pulse_read_failed", error=str(exc))
            return []

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    async def startup(self) -> None:
        if self.settings.pulse_enabled:
            self.pulse.start()

    async def shutdown(self) -> None:
        await self.pulse.stop()
        await self.dispatcher.close()
        await self.store.close()


_service: CompatService | None = None


def build_service(settings: Settings) -> CompatService:
    if settings.test_command:
        configure_runner(CommandRunner(settings.test_command))
    return CompatService(create_store(settings), settings)


def get_compat_service() -> CompatService:
    global _service
    if _service is None:
        _service = build_service(Settings.from_env())
    return _service


def configure_compat_service(service: CompatService) -> None:
    global _service
    _service = service


def reset_compat_state() -> None:
    """Utility used in tests to drop the process-wide service."""

    global _service
    _service = None
