"""
Path dialect resolution for recursive graph queries.

Resolved once from the bound SQLAlchemy dialect (no probe queries):
PostgreSQL has native arrays, every other backend gets delimited strings.
``settings.path_query_dialect`` forces one or the other.
"""

from __future__ import annotations

from typing import Any

from shared.config.constants import PathDialect
from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.utils.exceptions import InternalError

logger = get_logger(__name__)

ARRAY_DIALECTS = frozenset({"postgresql"})


def dialect_name(bind: Any) -> str:
    """Dialect name of a Session, Engine or Connection."""
    if hasattr(bind, "get_bind"):
        bind = bind.get_bind()
    dialect = getattr(bind, "dialect", None)
    if dialect is None:
        raise InternalError("Cannot resolve SQL dialect", bind=type(bind).__name__)
    return dialect.name


def resolve_path_dialect(bind: Any, override: str | None = None) -> PathDialect:
    """
    Pick how path columns are represented for ``bind``.

    Args:
        bind: Session, Engine or Connection
        override: "array", "delimited" or "auto"; defaults to settings

    Returns:
        PathDialect.ARRAY or PathDialect.DELIMITED
    """
    override = override or settings.path_query_dialect
    if override != "auto":
        return PathDialect(override)

    name = dialect_name(bind)
    resolved = PathDialect.ARRAY if name in ARRAY_DIALECTS else PathDialect.DELIMITED
    logger.debug("Path dialect resolved", dialect=name, path_dialect=resolved.value)
    return resolved
