import io

import pytest

from compatlab.application.uploads import save_upload, wait_until_visible
from compatlab.core.config import Settings
from compatlab.domain import TransientFailure


class EventuallyVisible:
    def __init__(self, after: int) -> None:
        self.after = after
        self.checks = 0

    def is_file(self) -> bool:
        self.checks += 1
        return self.checks > self.after


def test_save_upload_strips_directories(tmp_path):
    path = save_upload(tmp_path, "job1", "../../etc/pkg.tgz", io.BytesIO(b"payload"))

    assert path == tmp_path / "job1" / "pkg.tgz"
    assert path.read_bytes() == b"payload"


@pytest.mark.asyncio
async def test_visible_file_returns_immediately(tmp_path):
    target = tmp_path / "pkg.tgz"
    target.write_bytes(b"x")

    assert await wait_until_visible(target, attempts=1, delay=0) == target


@pytest.mark.asyncio
async def test_polls_until_visible():
    target = EventuallyVisible(after=2)

    await wait_until_visible(target, attempts=3, delay=0)

    assert target.checks == 3


@pytest.mark.asyncio
async def test_budget_exhaustion_raises_transient_failure():
    target = EventuallyVisible(after=10)

    with pytest.raises(TransientFailure):
        await wait_until_visible(target, attempts=3, delay=0)

    assert target.checks == 3


def test_settings_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("COMPAT_STORE_BACKEND", "Redis")
    monkeypatch.setenv("REDIS_URL", "redis://cache:6379/2")
    monkeypatch.setenv("COMPAT_UPLOADS_ROOT", str(tmp_path))
    monkeypatch.setenv("COMPAT_TEST_COMMAND", "\"/opt/compat tools/check\" --strict --label 'node 20'")
    monkeypatch.setenv("COMPAT_MAX_CONCURRENT_JOBS", "0")
    monkeypatch.setenv("COMPAT_PULSE_INTERVAL", "not-a-number")
    monkeypatch.setenv("COMPAT_PULSE_ENABLED", "false")

    settings = Settings.from_env()

    assert settings.store_backend == "redis"
    assert settings.redis_url == "redis://cache:6379/2"
    assert settings.uploads_root == tmp_path.resolve()
    assert settings.test_command == ["/opt/compat tools/check", "--strict", "--label", "node 20"]
    assert settings.max_concurrent_jobs == 1
    assert settings.pulse_interval == 3600.0
    assert settings.pulse_enabled is False
