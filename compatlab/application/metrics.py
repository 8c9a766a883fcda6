"""Aggregate outcome counters and compatibility-issue frequencies."""
from __future__ import annotations

from compatlab.core.logs import get_logger
from compatlab.core.retry import RetryPolicy
from compatlab.core.schema import AggregateStats, CompatIssue
from compatlab.domain import JobState, StoreUnavailable
from compatlab.infrastructure import Store

TESTS_RUN = "tests_run"
TESTS_PASSED = "tests_passed"
TESTS_FAILED = "tests_failed"
TESTS_ERRORED = "tests_errored"

ISSUE_PREFIX = "compat-error:"

OUTCOME_COUNTERS: dict[JobState, str] = {
    JobState.PASSED: TESTS_PASSED,
    JobState.FAILED: TESTS_FAILED,
    JobState.ERRORED: TESTS_ERRORED,
}

logger = get_logger(__name__)


def issue_key(text: str) -> str:
    return f"{ISSUE_PREFIX}{text}"


class MetricsAggregator:
    def __init__(self, store: Store, *, retry: RetryPolicy | None = None) -> None:
        self._store = store
        self._retry = retry or RetryPolicy()

    async def record_outcome(self, outcome: JobState | str) -> None:
        """Count one finished job. Called once per job at its terminal transition."""

        state = JobState(outcome)
        counter = OUTCOME_COUNTERS.get(state)
        if counter is None:
            raise ValueError(f"not a terminal outcome: {state.value}")
        await self._retry.call(self._store.increment, TESTS_RUN, 1)
        await self._retry.call(self._store.increment, counter, 1)

    async def record_compat_issue(self, text: str) -> None:
        text = str(text).strip()
        if not text:
            return
        await self._retry.call(self._store.increment, issue_key(text), 1)

    async def _read_counter(self, key: str) -> int:
        value = await self._retry.call(self._store.get, key, 0)
        return int(value or 0)

    async def snapshot(self, *, best_effort: bool = False) -> AggregateStats:
        """Read the four counters.

        The reads are independent, so a snapshot may straddle an in-flight
        increment. With ``best_effort`` an unreadable counter reports ``0`` and
        the snapshot is flagged ``partial`` instead of raising.
        """

        values: dict[str, int] = {}
        partial = False
        for key in (TESTS_RUN, TESTS_PASSED, TESTS_FAILED, TESTS_ERRORED):
            try:
                values[key] = await self._read_counter(key)
            except StoreUnavailable as exc:
                if not best_effort:
                    raise
                logger.warning("counter_read_failed", counter=key, error=str(exc))
                values[key] = 0
                partial = True
        return AggregateStats(
            total=values[TESTS_RUN],
            passed=values[TESTS_PASSED],
            failed=values[TESTS_FAILED],
            errors=values[TESTS_ERRORED],
            partial=partial,
        )

    async def list_issues(self) -> list[CompatIssue]:
        keys = await self._retry.call(self._store.get_keys, f"{ISSUE_PREFIX}*")
        issues: list[CompatIssue] = []
        for key in keys:
            count = await self._retry.call(self._store.get, key, None)
            if count is None:
                continue
            issues.append(CompatIssue(text=key[len(ISSUE_PREFIX):], count=int(count)))
        issues.sort(key=lambda item: (-item.count, item.text))
        return issues
