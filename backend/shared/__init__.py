"""
Shared module for configuration, infrastructure and utilities used by the datastore.

STRUCTURE:
- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging
  - constants.py: AuditAction, SortMode, PathDialect, limits

- shared.infrastructure: Database and cache
  - db.py: Engine/session factories, get_db_context(), safe_commit()
  - redis/: Sync Redis pool and cache key layout
  - cache/: Cache protocol and RedisCache adapter

- shared.utils: Utilities
  - exceptions.py: Typed errors with auto-logging
  - validators.py: LIKE escaping, search terms, JSON query params

IMPORT EXAMPLES:
    from shared.config.settings import settings
    from shared.config.constants import AuditAction
    from shared.infrastructure.db import build_engine, get_db_context, safe_commit
    from shared.infrastructure.cache import RedisCache
    from shared.utils.exceptions import NotFoundError, DatabaseError
"""
