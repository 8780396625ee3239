"""
Read helpers: point lookups (cached by id), filtered finds and list pages.

All functions take the caller's Session and the mapped model of the entity
type being read. Only ``get_by_id`` touches the cache; filter-keyed lookups
are not id-stable and always hit the store.
"""

from __future__ import annotations

from typing import Any, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from shared.config.logging import get_logger
from shared.infrastructure.cache import Cache
from shared.infrastructure.redis.constants import get_entity_cache_key
from shared.utils.exceptions import NotFoundError
from shared.utils.validators import escape_like_pattern, normalize_search_term

from datastore.context import RequestContext
from datastore.crud.query import (
    Where,
    build_order,
    build_where,
    coerce_id,
    column,
    entity_name,
    id_column,
    json_safe,
    keyset_after,
    merge_where,
    select_entities,
    serialize_entity,
    store_operation,
)
from datastore.pagination import (
    cursor_meta,
    pagination_meta,
    parse_cursor_query,
    parse_pagination_query,
)
from datastore.schemas import Entity, ListCursorResult, ListPaginationResult

logger = get_logger(__name__)

# Projection used by list_pagination when the caller asks for no columns
DEFAULT_LIST_FIELDS = ("id", "name")


def get_by_id(
    db: Session,
    model: type,
    entity_id: Any,
    *,
    cache: Cache | None = None,
    include: Sequence[str] | None = None,
    fields: Sequence[str] | None = None,
) -> Entity:
    """
    Fetch one entity by id, reading through the cache.

    A cache hit returns without touching the store. On a miss the row is
    loaded, snapshotted and cached under "<entity_type>:<id>".

    Raises:
        NotFoundError: If no row has this id.
    """
    name = entity_name(model)
    key = get_entity_cache_key(name, entity_id)

    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            logger.debug("Cache hit", entity=name, entity_id=entity_id)
            return cached
        logger.debug("Cache miss", entity=name, entity_id=entity_id)

    stmt = select_entities(model, include=include, fields=fields).where(
        id_column(model) == coerce_id(model, entity_id)
    )
    with store_operation("get_by_id", name):
        obj = db.scalar(stmt)

    if obj is None:
        raise NotFoundError(name, entity_id)

    entity = serialize_entity(obj, include, fields)
    if cache is not None:
        cache.set(key, entity)
    return entity


def get(
    db: Session,
    model: type,
    *,
    include: Sequence[str] | None = None,
    fields: Sequence[str] | None = None,
    where: Where | None = None,
) -> Entity | None:
    """First row matching ``where`` (in id order), or None. Never cached."""
    name = entity_name(model)
    stmt = (
        select_entities(model, include=include, fields=fields, where=where)
        .order_by(id_column(model))
        .limit(1)
    )
    with store_operation("get", name):
        obj = db.scalars(stmt).first()
    return None if obj is None else serialize_entity(obj, include, fields)


def get_many(
    db: Session,
    model: type,
    *,
    include: Sequence[str] | None = None,
    fields: Sequence[str] | None = None,
    where: Where | None = None,
) -> list[Entity]:
    """All rows matching ``where`` in id order. Never cached."""
    name = entity_name(model)
    stmt = select_entities(model, include=include, fields=fields, where=where).order_by(
        id_column(model)
    )
    with store_operation("get_many", name):
        rows = db.scalars(stmt).all()
    return [serialize_entity(obj, include, fields) for obj in rows]


def list_dropdown(
    ctx: RequestContext,
    db: Session,
    model: type,
    *,
    where: Where | None = None,
) -> list[Entity]:
    """
    ``{id, name}`` pairs whose name contains the request's ``search`` term.

    An empty or missing term lists every row. Matching is case-insensitive
    and LIKE wildcards in the term are matched literally.
    """
    name = entity_name(model)
    name_col = column(model, "name")
    stmt = select(id_column(model), name_col).where(*build_where(model, where))

    search = normalize_search_term(ctx.query.get("search"))
    if search:
        stmt = stmt.where(name_col.ilike(f"%{escape_like_pattern(search)}%", escape="\\"))

    stmt = stmt.order_by(name_col, id_column(model))
    with store_operation("list_dropdown", name):
        rows = db.execute(stmt).all()
    return [{"id": json_safe(row[0]), "name": row[1]} for row in rows]


def _count(db: Session, model: type, criteria: list) -> int:
    stmt = select(func.count()).select_from(model).where(*criteria)
    return db.scalar(stmt) or 0


def list_pagination_with_include(
    ctx: RequestContext,
    db: Session,
    model: type,
    *,
    where: Where | None = None,
    fields: Sequence[str] | None = None,
    include: Sequence[str] | None = None,
) -> ListPaginationResult[Entity]:
    """
    One offset page plus ``{total, page, limit, total_pages}``.

    The count and the page fetch use the same criteria: request field
    filters merged with ``where`` (``where`` wins on conflicting keys).
    """
    name = entity_name(model)
    query = parse_pagination_query(ctx.query)
    criteria = build_where(model, merge_where(query.field, where))

    stmt = (
        select_entities(model, include=include, fields=fields)
        .where(*criteria)
        .order_by(*build_order(model, query.sort))
        .offset(query.offset)
        .limit(query.limit)
    )
    with store_operation("list_pagination", name):
        total = _count(db, model, criteria)
        rows = db.scalars(stmt).all()

    result = [serialize_entity(obj, include, fields) for obj in rows]
    return ListPaginationResult[Entity](
        result=result,
        meta=pagination_meta(total=total, page=query.page, limit=query.limit),
    )


def list_pagination(
    ctx: RequestContext,
    db: Session,
    model: type,
    *,
    where: Where | None = None,
) -> ListPaginationResult[Entity]:
    """Offset page projected to ``{id, name}``."""
    return list_pagination_with_include(ctx, db, model, where=where, fields=DEFAULT_LIST_FIELDS)


def list_cursor(
    ctx: RequestContext,
    db: Session,
    model: type,
    *,
    include: Sequence[str] | None = None,
    where: Where | None = None,
) -> ListCursorResult[Entity]:
    """
    Up to ``limit`` rows strictly after the cursor row.

    The cursor is the id of the last row of the previous page. It must
    reference an existing row; the cursor row itself is never repeated.
    ``meta.total`` counts every row matching the filter, ignoring the cursor.

    Raises:
        NotFoundError: If the cursor id does not exist.
    """
    name = entity_name(model)
    query = parse_cursor_query(ctx.query)
    criteria = build_where(model, merge_where(query.field, where))

    stmt = (
        select_entities(model, include=include)
        .where(*criteria)
        .order_by(*build_order(model, query.sort))
        .limit(query.limit)
    )

    with store_operation("list_cursor", name):
        if query.cursor is not None:
            anchor = db.get(model, coerce_id(model, query.cursor))
            if anchor is None:
                raise NotFoundError(name, query.cursor, reason="cursor")
            stmt = stmt.where(keyset_after(model, query.sort, anchor))

        total = _count(db, model, criteria)
        rows = db.scalars(stmt).all()

    result = [serialize_entity(obj, include) for obj in rows]
    return ListCursorResult[Entity](
        result=result,
        meta=cursor_meta(result=result, total=total),
    )
