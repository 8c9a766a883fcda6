import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from compatlab.application import JobRegistry, MetricsAggregator
from compatlab.application.service import reset_compat_state
from compatlab.core.retry import RetryPolicy
from compatlab.infrastructure import InMemoryStore, UnconfiguredRunner, configure_runner


@pytest.fixture(autouse=True)
def reset_state():
    reset_compat_state()
    configure_runner(UnconfiguredRunner())
    yield
    reset_compat_state()
    configure_runner(UnconfiguredRunner())


@pytest.fixture()
def store():
    return InMemoryStore()


@pytest.fixture()
def fast_retry():
    return RetryPolicy(attempts=3, wait=0)


@pytest.fixture()
def registry(store, fast_retry):
    return JobRegistry(store, retry=fast_retry)


@pytest.fixture()
def metrics(store, fast_retry):
    return MetricsAggregator(store, retry=fast_retry)
