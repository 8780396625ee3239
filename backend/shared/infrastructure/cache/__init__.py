"""
Cache package initialization.
"""

from shared.infrastructure.cache.store import (
    Cache,
    RedisCache,
)

__all__ = [
    "Cache",
    "RedisCache",
]
