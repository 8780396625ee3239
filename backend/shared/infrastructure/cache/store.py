"""
Entity cache.

The datastore only depends on the ``Cache`` protocol (get/set/delete by
string key). ``RedisCache`` is the production adapter: it JSON-encodes
snapshots, prefixes keys and applies the configured TTL. Coherency is
best-effort; concurrent writers to the same key are last-write-wins.
"""

from __future__ import annotations

import json
from typing import Any, Protocol, runtime_checkable

import redis

from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.infrastructure.redis.constants import PREFIX_CACHE_ENTITY

logger = get_logger(__name__)


@runtime_checkable
class Cache(Protocol):
    """Key-value cache consumed by the read/write/delete helpers."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class RedisCache:
    """
    Cache backed by a synchronous redis client.

    Usage:
        from shared.infrastructure.redis import get_redis_sync_client

        cache = RedisCache(get_redis_sync_client())
        repo = DeviceRepository(cache)
    """

    def __init__(
        self,
        client: redis.Redis,
        *,
        prefix: str = PREFIX_CACHE_ENTITY,
        ttl_seconds: int | None = None,
    ):
        self._client = client
        self._prefix = prefix
        self._ttl = settings.cache_ttl_seconds if ttl_seconds is None else ttl_seconds

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str) -> Any | None:
        raw = self._client.get(self._key(key))
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value, default=str)
        if self._ttl > 0:
            self._client.setex(self._key(key), self._ttl, payload)
        else:
            self._client.set(self._key(key), payload)

    def delete(self, key: str) -> None:
        self._client.delete(self._key(key))
