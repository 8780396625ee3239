"""
Write helpers with optional auditing.

Every mutating helper:
1. writes the entity through the caller's Session (flush, never commit)
2. appends an Audit record when ``is_audited`` is set
3. refreshes the id-keyed cache entry (create/update only)

Bulk inserts are not audited: rows created through ``create_many`` have no
change history.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from sqlalchemy import insert
from sqlalchemy.orm import Session

from shared.config.constants import AuditAction
from shared.config.logging import get_logger
from shared.infrastructure.cache import Cache
from shared.infrastructure.redis.constants import get_entity_cache_key
from shared.utils.exceptions import NotFoundError, ValidationError

from datastore.context import RequestContext
from datastore.crud import audit
from datastore.crud.query import (
    Where,
    coerce_id,
    entity_name,
    id_column,
    select_entities,
    serialize_entity,
    store_operation,
    validate_body,
)
from datastore.crud.read import get, get_by_id
from datastore.schemas import BatchResult, Entity

logger = get_logger(__name__)


def _reload(
    db: Session,
    model: type,
    entity_id: Any,
    include: Sequence[str] | None,
    fields: Sequence[str] | None,
) -> Any:
    """Re-read a just-flushed row so defaults and relations are current."""
    stmt = (
        select_entities(model, include=include, fields=fields)
        .where(id_column(model) == entity_id)
        .execution_options(populate_existing=True)
    )
    return db.scalar(stmt)


def _cache_set(cache: Cache | None, model: type, entity: Entity) -> None:
    if cache is not None and entity.get("id") is not None:
        cache.set(get_entity_cache_key(entity_name(model), entity["id"]), entity)


def create(
    is_audited: bool,
    ctx: RequestContext,
    body: Mapping[str, Any],
    db: Session,
    model: type,
    *,
    cache: Cache | None = None,
    include: Sequence[str] | None = None,
    fields: Sequence[str] | None = None,
) -> Entity:
    """
    Insert one row from ``body``.

    When audited, the record has ``previous = {}``, ``incoming`` = the new
    snapshot and action CREATE. The new snapshot is cached by id.
    """
    name = entity_name(model)
    obj = model(**validate_body(model, body))

    with store_operation("create", name):
        db.add(obj)
        db.flush()
        obj = _reload(db, model, obj.id, include, fields)

    entity = serialize_entity(obj, include, fields)

    if is_audited:
        audit.append(
            db,
            ctx.user,
            entity_type=name,
            entity_id=obj.id,
            previous={},
            incoming=entity,
            action=AuditAction.CREATE,
        )

    _cache_set(cache, model, entity)
    logger.info("Entity created", entity=name, entity_id=obj.id, audited=is_audited)
    return entity


def create_many(
    body: Sequence[Mapping[str, Any]],
    db: Session,
    model: type,
) -> BatchResult:
    """Bulk insert. Not audited and not cached."""
    name = entity_name(model)
    rows = [validate_body(model, row) for row in body]
    if not rows:
        return BatchResult(count=0)

    with store_operation("create_many", name):
        db.execute(insert(model), rows)
        db.flush()

    logger.info("Entities created", entity=name, count=len(rows))
    return BatchResult(count=len(rows))


def upsert(
    is_audited: bool,
    ctx: RequestContext,
    name_value: str,
    db: Session,
    model: type,
    create_body: Mapping[str, Any],
    update_body: Mapping[str, Any],
    *,
    include: Sequence[str] | None = None,
    fields: Sequence[str] | None = None,
    where: Where | None = None,
) -> Entity:
    """
    Update the row whose ``name`` equals ``name_value`` or create it.

    The action recorded is UPDATE when a row with that name existed and
    CREATE otherwise. The change_count continues the history of the resolved
    id, so re-creating a previously deleted id keeps its sequence. The cache
    is not touched: upserts are keyed by name, not id.
    """
    name = entity_name(model)
    lookup = {**(where or {}), "name": name_value}

    existing = get(db, model, include=include, where=lookup)

    if existing is None:
        body = {**validate_body(model, create_body), "name": name_value}
        obj = model(**body)
        with store_operation("upsert", name):
            db.add(obj)
            db.flush()
            entity_id = obj.id
    else:
        entity_id = coerce_id(model, existing["id"])
        body = validate_body(model, update_body)
        with store_operation("upsert", name):
            obj = db.get(model, entity_id)
            for key, value in body.items():
                setattr(obj, key, value)
            db.flush()

    with store_operation("upsert", name):
        obj = _reload(db, model, entity_id, include, fields)
    entity = serialize_entity(obj, include, fields)

    if is_audited:
        audit.append(
            db,
            ctx.user,
            entity_type=name,
            entity_id=entity_id,
            previous=existing or {},
            incoming=entity,
            action=AuditAction.UPDATE if existing is not None else AuditAction.CREATE,
            change_count=audit.next_change_count(db, name, entity_id),
        )

    logger.info(
        "Entity upserted",
        entity=name,
        entity_id=entity_id,
        created=existing is None,
        audited=is_audited,
    )
    return entity


def update(
    is_audited: bool,
    ctx: RequestContext,
    entity_id: Any,
    body: Mapping[str, Any],
    db: Session,
    model: type,
    *,
    cache: Cache | None = None,
    include: Sequence[str] | None = None,
    fields: Sequence[str] | None = None,
    where: Where | None = None,
) -> Entity:
    """
    Apply ``body`` to the row with ``entity_id`` (and matching ``where``).

    The "before" snapshot is read through the cache. The resulting snapshot
    replaces the cache entry.

    Raises:
        NotFoundError: If the id does not exist or does not match ``where``.
    """
    name = entity_name(model)
    values = validate_body(model, body)
    if "id" in values and str(values["id"]) != str(entity_id):
        raise ValidationError("Entity id cannot be changed", entity=name, field="id")

    previous = get_by_id(db, model, entity_id, cache=cache, include=include, fields=fields)
    ident = coerce_id(model, entity_id)

    with store_operation("update", name):
        obj = db.scalar(select_entities(model, where=where).where(id_column(model) == ident))
        if obj is None:
            raise NotFoundError(name, entity_id)
        for key, value in values.items():
            setattr(obj, key, value)
        db.flush()
        obj = _reload(db, model, ident, include, fields)

    entity = serialize_entity(obj, include, fields)

    if is_audited:
        audit.append(
            db,
            ctx.user,
            entity_type=name,
            entity_id=ident,
            previous=previous,
            incoming=entity,
            action=AuditAction.UPDATE,
        )

    _cache_set(cache, model, entity)
    logger.info("Entity updated", entity=name, entity_id=entity_id, audited=is_audited)
    return entity
