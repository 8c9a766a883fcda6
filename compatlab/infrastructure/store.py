"""Key-value persistence backends.

Two interchangeable implementations share one async contract: an in-memory
store for development and tests, and a Redis-backed store for deployments.
Scalar values are JSON documents, counters are integers, and named lists are
append-only sequences read from the tail.
"""
from __future__ import annotations

import copy
import fnmatch
import json
import threading
from typing import Any, Protocol

from compatlab.core.config import Settings
from compatlab.domain import NotFound, StoreUnavailable

_MISSING: Any = object()


class Store(Protocol):
    """Persistence contract shared by every backend."""

    async def set(self, key: str, value: Any) -> None: ...

    async def get(self, key: str, default: Any = _MISSING) -> Any: ...

    async def get_keys(self, pattern: str) -> set[str]: ...

    async def enqueue(self, name: str, value: Any) -> None: ...

    async def get_last(self, name: str, n: int) -> list[Any]: ...

    async def increment(self, key: str, delta: int = 1) -> int: ...

    async def close(self) -> None: ...


def _ensure_serialisable(value: Any) -> None:
    try:
        json.dumps(value)
    except (TypeError, ValueError) as exc:
        raise TypeError(f"value is not serialisable: {exc}") from exc


class InMemoryStore:
    """Process-local store guarded by a single lock."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._values: dict[str, Any] = {}
        self._lists: dict[str, list[Any]] = {}

    async def set(self, key: str, value: Any) -> None:
        _ensure_serialisable(value)
        with self._lock:
            self._values[key] = copy.deepcopy(value)

    async def get(self, key: str, default: Any = _MISSING) -> Any:
        with self._lock:
            if key in self._values:
                return copy.deepcopy(self._values[key])
        if default is _MISSING:
            raise NotFound(key)
        return default

    async def get_keys(self, pattern: str) -> set[str]:
        with self._lock:
            keys = list(self._values) + list(self._lists)
        return {key for key in keys if fnmatch.fnmatchcase(key, pattern)}

    async def enqueue(self, name: str, value: Any) -> None:
        _ensure_serialisable(value)
        with self._lock:
            self._lists.setdefault(name, []).append(copy.deepcopy(value))

    async def get_last(self, name: str, n: int) -> list[Any]:
        if n <= 0:
            return []
        with self._lock:
            items = self._lists.get(name, [])
            return copy.deepcopy(items[-n:])

    async def increment(self, key: str, delta: int = 1) -> int:
        with self._lock:
            current = self._values.get(key, 0)
            if not isinstance(current, int) or isinstance(current, bool):
                raise TypeError(f"value at {key} is not a counter")
            updated = current + int(delta)
            self._values[key] = updated
            return updated

    async def close(self) -> None:
        return None

    def reset(self) -> None:
        """Utility used in tests to clear stored state."""

        with self._lock:
            self._values.clear()
            self._lists.clear()


def _import_redis() -> Any:
    try:
        import redis.asyncio as aioredis  # type: ignore
    except ModuleNotFoundError as exc:  # pragma: no cover - depends on env
        raise RuntimeError("redis is required for COMPAT_STORE_BACKEND=redis; install redis>=5") from exc
    return aioredis


def _redis_errors() -> tuple[type[BaseException], ...]:
    from redis.exceptions import RedisError  # type: ignore

    return (RedisError, OSError)


class RedisStore:
    """Durable store backed by Redis.

    Scalars are stored as JSON strings, counters use ``INCRBY`` (whose integer
    payload is itself valid JSON), lists use ``RPUSH``/``LRANGE`` and key
    enumeration walks ``SCAN MATCH``. Any client error surfaces as
    :class:`StoreUnavailable`.
    """

    def __init__(self, *, url: str | None = None, client: Any | None = None) -> None:
        if client is None:
            if not url:
                raise ValueError("REDIS_URL must be provided for the redis store backend")
            aioredis = _import_redis()
            client = aioredis.from_url(url, encoding="utf-8", decode_responses=True)
        self._client = client
        self._errors = _redis_errors()

    async def _call(self, method: str, *args: Any, **kwargs: Any) -> Any:
        try:
            return await getattr(self._client, method)(*args, **kwargs)
        except self._errors as exc:
            raise StoreUnavailable(f"redis {method} failed: {exc}") from exc

    @staticmethod
    def _decode(raw: Any) -> Any:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        _ensure_serialisable(value)
        await self._call("set", key, json.dumps(value))

    async def get(self, key: str, default: Any = _MISSING) -> Any:
        raw = await self._call("get", key)
        if raw is None:
            if default is _MISSING:
                raise NotFound(key)
            return default
        return self._decode(raw)

    async def get_keys(self, pattern: str) -> set[str]:
        keys: set[str] = set()
        cursor: Any = 0
        while True:
            cursor, batch = await self._call("scan", cursor=cursor, match=pattern, count=500)
            for key in batch:
                keys.add(key.decode("utf-8") if isinstance(key, bytes) else str(key))
            if int(cursor) == 0:
                break
        return keys

    async def enqueue(self, name: str, value: Any) -> None:
        _ensure_serialisable(value)
        await self._call("rpush", name, json.dumps(value))

    async def get_last(self, name: str, n: int) -> list[Any]:
        if n <= 0:
            return []
        raw_items = await self._call("lrange", name, -n, -1)
        return [self._decode(item) for item in raw_items or []]

    async def increment(self, key: str, delta: int = 1) -> int:
        value = await self._call("incrby", key, int(delta))
        return int(value)

    async def close(self) -> None:
        close = getattr(self._client, "aclose", None) or getattr(self._client, "close", None)
        if close is None:
            return
        try:
            await close()
        except self._errors as exc:
            raise StoreUnavailable(f"redis close failed: {exc}") from exc


def create_store(settings: Settings) -> Store:
    """Build the store backend selected by ``settings.store_backend``."""

    backend = settings.store_backend
    if backend == "redis":
        return RedisStore(url=settings.redis_url)
    if backend == "memory":
        return InMemoryStore()
    raise ValueError(f"unsupported store backend: {backend}")
