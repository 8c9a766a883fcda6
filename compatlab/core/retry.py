from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from compatlab.core.logs import get_logger
from compatlab.domain import StoreUnavailable

T = TypeVar("T")

logger = get_logger(__name__)


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logger.warning("store_retry", attempt=state.attempt_number, error=str(exc))


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Bounded retry budget for transient store failures."""

    attempts: int = 3
    wait: float = 0.2

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Await ``func`` retrying on :class:`StoreUnavailable`.

        The last ``StoreUnavailable`` is re-raised once the budget is spent.
        """

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, self.attempts)),
            wait=wait_exponential(multiplier=self.wait, max=max(self.wait * 8, self.wait)),
            retry=retry_if_exception_type(StoreUnavailable),
            before_sleep=_log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await func(*args, **kwargs)
        raise AssertionError("unreachable")  # pragma: no cover
