"""Expiring key/value store: Redis in remote mode, in-process dict in local mode."""

import logging
import time
from typing import Callable, Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from conduit.errors.exceptions import DependencyError

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def get(self, key: str) -> str | None: ...

    async def delete(self, key: str) -> None: ...

    async def exists(self, key: str) -> bool: ...

    async def ping(self) -> bool: ...


class RedisKeyValueStore:
    def __init__(self, client: aioredis.Redis):
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> "RedisKeyValueStore":
        return cls(aioredis.from_url(url, decode_responses=True))

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._redis.setex(key, ttl_seconds, value)
        except RedisError as exc:
            raise DependencyError(f"Key/value store write failed: {exc}", code="KV_ERROR") from exc

    async def get(self, key: str) -> str | None:
        try:
            return await self._redis.get(key)
        except RedisError as exc:
            raise DependencyError(f"Key/value store read failed: {exc}", code="KV_ERROR") from exc

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(key)
        except RedisError as exc:
            raise DependencyError(f"Key/value store delete failed: {exc}", code="KV_ERROR") from exc

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self._redis.exists(key))
        except RedisError as exc:
            raise DependencyError(f"Key/value store read failed: {exc}", code="KV_ERROR") from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError as exc:
            logger.warning("Redis ping failed: %s", exc)
            return False

    async def aclose(self) -> None:
        await self._redis.aclose()


class MemoryKeyValueStore:
    """Single-process store for local mode and tests. Expired keys are dropped on read."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: dict[str, tuple[str, float]] = {}

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._data[key] = (value, self._clock() + ttl_seconds)

    async def get(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        self._data.clear()
