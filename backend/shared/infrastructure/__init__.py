"""
Infrastructure module: Database sessions and the Redis-backed cache.

Provides:
- Engine/session factories and transaction helpers (db.py)
- Redis pool and cache key layout (redis/)
- Cache protocol and Redis adapter (cache/)
"""

from shared.infrastructure.db import (
    build_engine,
    build_session_factory,
    get_db_context,
    safe_commit,
)
from shared.infrastructure.cache import Cache, RedisCache
from shared.infrastructure.redis import (
    get_entity_cache_key,
    get_redis_sync_client,
    close_redis_sync_client,
)

__all__ = [
    # db
    "build_engine",
    "build_session_factory",
    "get_db_context",
    "safe_commit",
    # cache
    "Cache",
    "RedisCache",
    # redis
    "get_entity_cache_key",
    "get_redis_sync_client",
    "close_redis_sync_client",
]
