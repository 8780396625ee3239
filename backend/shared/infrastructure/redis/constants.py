"""
Redis constants and configuration.
Centralizes key layout for the entity cache.
"""

from shared.config.settings import settings

# =============================================================================
# Key Prefixes
# =============================================================================

PREFIX_CACHE_ENTITY = settings.cache_key_prefix

# "<entity_type>:<id>", scoped by type so ids of different tables never collide
ENTITY_CACHE_KEY_TEMPLATE = "{entity_type}:{entity_id}"


def get_entity_cache_key(entity_type: str, entity_id: object) -> str:
    """Generate the cache key for one entity snapshot."""
    return ENTITY_CACHE_KEY_TEMPLATE.format(entity_type=entity_type, entity_id=entity_id)
