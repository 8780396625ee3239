"""
Redis connection pool and key layout.
"""

from shared.infrastructure.redis.constants import (
    PREFIX_CACHE_ENTITY,
    get_entity_cache_key,
)
from shared.infrastructure.redis.pool import (
    get_redis_sync_client,
    close_redis_sync_client,
)

__all__ = [
    "PREFIX_CACHE_ENTITY",
    "get_entity_cache_key",
    "get_redis_sync_client",
    "close_redis_sync_client",
]
