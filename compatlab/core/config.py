from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _uploads_root() -> Path:
    env_root = os.getenv("COMPAT_UPLOADS_ROOT")
    if env_root:
        return Path(env_root).expanduser().resolve()
    return Path(__file__).resolve().parents[2] / ".temp"


@dataclass(slots=True)
class Settings:
    """Runtime configuration resolved from the environment."""

    store_backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    uploads_root: Path = field(default_factory=_uploads_root)
    test_command: list[str] = field(default_factory=list)
    test_timeout: float = 600.0
    max_concurrent_jobs: int = 4
    pulse_interval: float = 3600.0
    pulse_enabled: bool = True
    store_retry_attempts: int = 3
    store_retry_wait: float = 0.2
    upload_visibility_attempts: int = 3
    upload_visibility_delay: float = 0.1
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        command = os.getenv("COMPAT_TEST_COMMAND", "")
        return cls(
            store_backend=(os.getenv("COMPAT_STORE_BACKEND") or "memory").strip().lower(),
            redis_url=os.getenv("REDIS_URL") or "redis://localhost:6379/0",
            uploads_root=_uploads_root(),
            test_command=shlex.split(command) if command.strip() else [],
            test_timeout=_env_float("COMPAT_TEST_TIMEOUT", 600.0),
            max_concurrent_jobs=max(1, _env_int("COMPAT_MAX_CONCURRENT_JOBS", 4)),
            pulse_interval=max(1.0, _env_float("COMPAT_PULSE_INTERVAL", 3600.0)),
            pulse_enabled=_env_bool("COMPAT_PULSE_ENABLED", True),
            store_retry_attempts=max(1, _env_int("COMPAT_STORE_RETRY_ATTEMPTS", 3)),
            store_retry_wait=max(0.0, _env_float("COMPAT_STORE_RETRY_WAIT", 0.2)),
            upload_visibility_attempts=max(1, _env_int("COMPAT_UPLOAD_VISIBILITY_ATTEMPTS", 3)),
            upload_visibility_delay=max(0.0, _env_float("COMPAT_UPLOAD_VISIBILITY_DELAY", 0.1)),
            log_level=os.getenv("LOG_LEVEL") or "INFO",
        )
