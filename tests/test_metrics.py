import pytest

from compatlab.application import MetricsAggregator
from compatlab.core.retry import RetryPolicy
from compatlab.domain import JobState, StoreUnavailable
from compatlab.infrastructure import InMemoryStore


class FlakyStore(InMemoryStore):
    """Fails the first ``failures`` calls of the named methods."""

    def __init__(self, failures: int, methods: set[str]) -> None:
        super().__init__()
        self.failures = failures
        self.methods = methods
        self.calls = 0

    def _maybe_fail(self, method: str) -> None:
        if method in self.methods and self.failures > 0:
            self.failures -= 1
            raise StoreUnavailable(f"{method} unavailable")

    async def get(self, key, *args):
        self._maybe_fail("get")
        return await super().get(key, *args)

    async def increment(self, key, delta=1):
        self.calls += 1
        self._maybe_fail("increment")
        return await super().increment(key, delta)

    async def get_keys(self, pattern):
        self._maybe_fail("get_keys")
        return await super().get_keys(pattern)


@pytest.mark.asyncio
async def test_record_outcome_keeps_totals_consistent(metrics):
    for outcome in ["passed", "passed", "failed", "errored", JobState.PASSED]:
        await metrics.record_outcome(outcome)

    stats = await metrics.snapshot()
    assert (stats.total, stats.passed, stats.failed, stats.errors) == (5, 3, 1, 1)
    assert stats.total == stats.passed + stats.failed + stats.errors
    assert stats.partial is False


@pytest.mark.asyncio
async def test_record_outcome_rejects_non_terminal_state(metrics):
    with pytest.raises(ValueError):
        await metrics.record_outcome(JobState.RUNNING)

    assert (await metrics.snapshot()).total == 0


@pytest.mark.asyncio
async def test_snapshot_of_empty_store_is_zero(metrics):
    stats = await metrics.snapshot()
    assert stats.model_dump() == {"total": 0, "passed": 0, "failed": 0, "errors": 0, "partial": False}


@pytest.mark.asyncio
async def test_compat_issues_are_counted_and_sorted(metrics, store):
    for text in ["missing-symbol-X", "abi-break", "missing-symbol-X", "  ", "zlib-version"]:
        await metrics.record_compat_issue(text)

    assert await store.get("compat-error:missing-symbol-X") == 2
    issues = await metrics.list_issues()
    assert [(issue.text, issue.count) for issue in issues] == [
        ("missing-symbol-X", 2),
        ("abi-break", 1),
        ("zlib-version", 1),
    ]


@pytest.mark.asyncio
async def test_issue_text_keeps_colons(metrics):
    await metrics.record_compat_issue("symbol: foo::bar")

    issues = await metrics.list_issues()
    assert issues[0].text == "symbol: foo::bar"


@pytest.mark.asyncio
async def test_transient_store_failures_are_retried():
    store = FlakyStore(failures=2, methods={"increment"})
    metrics = MetricsAggregator(store, retry=RetryPolicy(attempts=3, wait=0))

    await metrics.record_compat_issue("abi-break")

    assert await store.get("compat-error:abi-break") == 1
    assert store.calls == 3


@pytest.mark.asyncio
async def test_retry_budget_exhaustion_surfaces_error():
    store = FlakyStore(failures=5, methods={"increment"})
    metrics = MetricsAggregator(store, retry=RetryPolicy(attempts=2, wait=0))

    with pytest.raises(StoreUnavailable):
        await metrics.record_outcome("passed")


@pytest.mark.asyncio
async def test_best_effort_snapshot_flags_partial_results():
    store = FlakyStore(failures=100, methods={"get"})
    metrics = MetricsAggregator(store, retry=RetryPolicy(attempts=1, wait=0))

    with pytest.raises(StoreUnavailable):
        await metrics.snapshot()

    stats = await metrics.snapshot(best_effort=True)
    assert stats.partial is True
    assert stats.total == 0
