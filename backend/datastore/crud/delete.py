"""
Delete helpers with optional auditing and cache invalidation.
"""

from __future__ import annotations

from typing import Any, Sequence

from sqlalchemy import delete as sql_delete, select
from sqlalchemy.orm import Session

from shared.config.constants import AuditAction
from shared.config.logging import get_logger
from shared.infrastructure.cache import Cache
from shared.infrastructure.redis.constants import get_entity_cache_key
from shared.utils.exceptions import NotFoundError

from datastore.context import RequestContext
from datastore.crud import audit
from datastore.crud.query import (
    Where,
    build_where,
    coerce_id,
    entity_name,
    id_column,
    select_entities,
    serialize_entity,
    store_operation,
)
from datastore.crud.read import get_by_id
from datastore.schemas import BatchResult, Entity

logger = get_logger(__name__)


def delete(
    is_audited: bool,
    ctx: RequestContext,
    entity_id: Any,
    db: Session,
    model: type,
    *,
    cache: Cache | None = None,
    include: Sequence[str] | None = None,
    fields: Sequence[str] | None = None,
    where: Where | None = None,
) -> Entity:
    """
    Delete one row and return its last snapshot.

    Existence is checked first through ``get_by_id`` so a missing id fails
    with NotFoundError before any mutation. When audited, the record has
    ``incoming = {}`` and action DELETE. The cache entry is always removed.

    Raises:
        NotFoundError: If the id does not exist or does not match ``where``.
    """
    name = entity_name(model)
    key = get_entity_cache_key(name, entity_id)

    get_by_id(db, model, entity_id, cache=cache, include=include, fields=fields)
    ident = coerce_id(model, entity_id)

    with store_operation("delete", name):
        stmt = select_entities(model, include=include, where=where).where(id_column(model) == ident)
        obj = db.scalar(stmt)
        if obj is None:
            raise NotFoundError(name, entity_id)
        snapshot = serialize_entity(obj, include, fields)
        db.delete(obj)
        db.flush()

    if is_audited:
        audit.append(
            db,
            ctx.user,
            entity_type=name,
            entity_id=ident,
            previous=snapshot,
            incoming={},
            action=AuditAction.DELETE,
        )

    if cache is not None:
        cache.delete(key)

    logger.info("Entity deleted", entity=name, entity_id=entity_id, audited=is_audited)
    return snapshot


def delete_batch(
    ids: Sequence[Any],
    db: Session,
    model: type,
    *,
    cache: Cache | None = None,
    where: Where | None = None,
) -> BatchResult:
    """
    Delete every row whose id is in ``ids`` and matches ``where``.

    Not audited. Cache entries are removed for each id that was cached.
    """
    name = entity_name(model)
    if not ids:
        return BatchResult(count=0)

    ident = id_column(model)
    idents = [coerce_id(model, value) for value in ids]
    with store_operation("delete_batch", name):
        matched = db.scalars(
            select(ident).where(ident.in_(idents), *build_where(model, where))
        ).all()
        if matched:
            db.execute(
                sql_delete(model)
                .where(ident.in_(matched))
                .execution_options(synchronize_session="evaluate")
            )
            db.flush()

    if cache is not None:
        for value in ids:
            key = get_entity_cache_key(name, value)
            if cache.get(key) is not None:
                cache.delete(key)

    logger.info("Entities deleted", entity=name, count=len(matched))
    return BatchResult(count=len(matched))
