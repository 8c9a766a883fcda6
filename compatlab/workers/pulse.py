from __future__ import annotations

import asyncio
import contextlib
from datetime import UTC, datetime
from typing import Callable

from compatlab.application.metrics import MetricsAggregator
from compatlab.core.logs import get_logger
from compatlab.core.retry import RetryPolicy
from compatlab.core.schema import PulseEntry
from compatlab.domain import CompatError
from compatlab.infrastructure import Store

PULSE_LIST = "pulse"

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PulseRecorder:
    """Appends periodic snapshots of the aggregate counters to the ``pulse`` list.

    A snapshot is recorded on every tick whether or not jobs finished in the
    interval. A failed tick is logged and the loop carries on.
    """

    def __init__(
        self,
        store: Store,
        metrics: MetricsAggregator,
        *,
        interval: float = 3600.0,
        retry: RetryPolicy | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._metrics = metrics
        self._interval = interval
        self._retry = retry or RetryPolicy()
        self._clock = clock
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def record_once(self, now: datetime | None = None) -> PulseEntry:
        stats = await self._metrics.snapshot()
        moment = now or self._clock()
        entry = PulseEntry(
            time=moment.isoformat(),
            total=stats.total,
            passed=stats.passed,
            failed=stats.failed,
            errors=stats.errors,
        )
        await self._retry.call(self._store.enqueue, PULSE_LIST, entry.model_dump())
        logger.info("pulse_recorded", **entry.model_dump())
        return entry

    async def tick(self) -> PulseEntry | None:
        try:
            return await self.record_once()
        except CompatError as exc:
            logger.error("pulse_record_failed", error=str(exc))
        except Exception:
            logger.exception("pulse_record_failed")
        return None

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.tick()

    async def recent(self, n: int) -> list[PulseEntry]:
        raw = await self._retry.call(self._store.get_last, PULSE_LIST, n)
        return [PulseEntry.model_validate(item) for item in raw]

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self.run(), name="pulse-recorder")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
