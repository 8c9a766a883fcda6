from __future__ import annotations

import asyncio
import shutil
from pathlib import Path
from typing import BinaryIO

from tenacity import AsyncRetrying, RetryError, retry_if_result, stop_after_attempt, wait_fixed

from compatlab.domain import TransientFailure


def save_upload(root: Path, job_id: str, filename: str, source: BinaryIO) -> Path:
    """Persist an uploaded package under ``root/<job_id>/``."""

    safe_name = Path(filename).name
    target_dir = root / job_id
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / safe_name
    with target.open("wb") as buffer:
        shutil.copyfileobj(source, buffer)
    return target


async def wait_until_visible(path: Path, *, attempts: int = 3, delay: float = 0.1) -> Path:
    """Poll until ``path`` exists as a regular file.

    Sleeps ``delay`` seconds between checks and raises
    :class:`TransientFailure` after ``attempts`` misses.
    """

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_fixed(delay),
        retry=retry_if_result(lambda visible: not visible),
    )
    try:
        await retrying(asyncio.to_thread, path.is_file)
    except RetryError as exc:
        raise TransientFailure(f"upload not visible after {attempts} attempts: {path}") from exc
    return path
