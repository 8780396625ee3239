"""
Query shaping shared by the read, write and delete helpers.

Translates the generic ``where`` / ``include`` / ``fields`` / sort arguments
into SQLAlchemy constructs for one mapped model, and turns loaded rows into
JSON-safe entity snapshots.

Usage:
    stmt = select_entities(Device, include=["sensors"], where={"status": "ACTIVE"})
    rows = db.scalars(stmt).all()
    entities = [serialize_entity(row, include=["sensors"]) for row in rows]
"""

from __future__ import annotations

import enum
import uuid
from contextlib import contextmanager
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Callable, Iterator, Mapping, Sequence

from sqlalchemy import Select, and_, case, inspect as sa_inspect, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Mapper, load_only, selectinload
from sqlalchemy.sql.elements import ColumnElement

from shared.utils.exceptions import DatabaseError, ValidationError

from datastore.pagination import Sort

Where = Mapping[str, Any]

# Operator names accepted inside a field filter, e.g. {"name": {"contains": "x"}}
_OPERATORS: dict[str, Callable[[Any, Any], ColumnElement]] = {
    "equals": lambda col, v: col.is_(None) if v is None else col == v,
    "not": lambda col, v: col.is_not(None) if v is None else col != v,
    "in": lambda col, v: col.in_(list(v)),
    "notIn": lambda col, v: col.not_in(list(v)),
    "not_in": lambda col, v: col.not_in(list(v)),
    "lt": lambda col, v: col < v,
    "lte": lambda col, v: col <= v,
    "gt": lambda col, v: col > v,
    "gte": lambda col, v: col >= v,
    "contains": lambda col, v: col.contains(v, autoescape=True),
    "startsWith": lambda col, v: col.startswith(v, autoescape=True),
    "starts_with": lambda col, v: col.startswith(v, autoescape=True),
    "endsWith": lambda col, v: col.endswith(v, autoescape=True),
    "ends_with": lambda col, v: col.endswith(v, autoescape=True),
}

_INSENSITIVE_OPERATORS: dict[str, Callable[[Any, Any], ColumnElement]] = {
    "contains": lambda col, v: col.icontains(v, autoescape=True),
    "startsWith": lambda col, v: col.istartswith(v, autoescape=True),
    "starts_with": lambda col, v: col.istartswith(v, autoescape=True),
    "endsWith": lambda col, v: col.iendswith(v, autoescape=True),
    "ends_with": lambda col, v: col.iendswith(v, autoescape=True),
}


def entity_name(model: type) -> str:
    """Entity-type name used for cache keys, audit records and errors."""
    return model.__tablename__


def _mapper(model: type) -> Mapper:
    return sa_inspect(model)


def column_names(model: type) -> list[str]:
    return [attr.key for attr in _mapper(model).column_attrs]


def column(model: type, name: str, purpose: str = "filter") -> Any:
    """Mapped column attribute by name; unknown names are rejected."""
    if name not in _mapper(model).column_attrs:
        raise ValidationError(
            f"Unknown {purpose} column",
            entity=entity_name(model),
            field=name,
        )
    return getattr(model, name)


def id_column(model: type) -> Any:
    return column(model, "id", "id")


def coerce_id(model: type, value: Any) -> Any:
    """Convert an id received as text to the id column's Python type."""
    try:
        python_type = _mapper(model).columns["id"].type.python_type
    except NotImplementedError:
        return value
    if value is None or isinstance(value, python_type):
        return value
    try:
        return python_type(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            "Invalid id",
            entity=entity_name(model),
            field="id",
            value=value,
        ) from exc


def _field_criteria(model: type, name: str, condition: Any) -> list[ColumnElement]:
    col = column(model, name)

    if not isinstance(condition, Mapping):
        if isinstance(condition, (list, tuple, set)):
            return [col.in_(list(condition))]
        return [_OPERATORS["equals"](col, condition)]

    insensitive = condition.get("mode") == "insensitive"
    criteria = []
    for operator, value in condition.items():
        if operator == "mode":
            continue
        builder = (insensitive and _INSENSITIVE_OPERATORS.get(operator)) or _OPERATORS.get(operator)
        if builder is None:
            raise ValidationError(
                "Unknown filter operator",
                entity=entity_name(model),
                field=name,
                value=operator,
            )
        criteria.append(builder(col, value))
    return criteria


def build_where(model: type, where: Where | None) -> list[ColumnElement]:
    """
    Build WHERE criteria from a field filter mapping.

    Each key is a column; the value is either a literal (equality, or IN for
    a list) or a mapping of operator -> operand. ``{"mode": "insensitive"}``
    switches contains/startsWith/endsWith to case-insensitive matching.
    """
    criteria: list[ColumnElement] = []
    for name, condition in (where or {}).items():
        criteria.extend(_field_criteria(model, name, condition))
    return criteria


def merge_where(request_filters: Where | None, where: Where | None) -> dict[str, Any]:
    """Caller-supplied ``where`` overrides request field filters key by key."""
    return {**(request_filters or {}), **(where or {})}


def _null_rank(col: ColumnElement) -> ColumnElement:
    return case((col.is_(None), 0), else_=1)


def build_order(model: type, sort: Sort | None) -> list[ColumnElement]:
    """
    ORDER BY clauses; ``id`` is appended so the ordering is total.

    NULLs in the sort column rank below every value on all dialects: first
    when ascending, last when descending.
    """
    sort = sort or Sort()
    ident = id_column(model)
    clauses = []
    if sort.by != "id":
        col = column(model, sort.by, "sort")
        rank = _null_rank(col)
        if sort.descending:
            clauses.extend([rank.desc(), col.desc()])
        else:
            clauses.extend([rank.asc(), col.asc()])
    clauses.append(ident.desc() if sort.descending else ident.asc())
    return clauses


def keyset_after(model: type, sort: Sort, anchor: Any) -> ColumnElement:
    """
    Criteria selecting rows strictly after ``anchor`` in (sort column, id) order.

    Expanded form instead of a row-value comparison so every dialect accepts it.
    NULL sort values follow the placement of ``build_order``.
    """
    ident = id_column(model)
    after_id = ident < anchor.id if sort.descending else ident > anchor.id
    if sort.by == "id":
        return after_id

    col = column(model, sort.by, "sort")
    value = getattr(anchor, sort.by)
    if value is None:
        if sort.descending:
            return and_(col.is_(None), after_id)
        return or_(and_(col.is_(None), after_id), col.is_not(None))

    after_value = col < value if sort.descending else col > value
    criteria = or_(after_value, and_(col == value, after_id))
    if sort.descending:
        return or_(criteria, col.is_(None))
    return criteria


def loader_options(
    model: type,
    include: Sequence[str] | None = None,
    fields: Sequence[str] | None = None,
) -> list[Any]:
    """Eager-load ``include`` relationships and restrict loaded columns to ``fields``."""
    mapper = _mapper(model)
    options: list[Any] = []
    if fields:
        options.append(load_only(*[column(model, name, "select") for name in fields]))
    for name in include or ():
        if name not in mapper.relationships:
            raise ValidationError(
                "Unknown include relation",
                entity=entity_name(model),
                field=name,
            )
        options.append(selectinload(getattr(model, name)))
    return options


def select_entities(
    model: type,
    *,
    include: Sequence[str] | None = None,
    fields: Sequence[str] | None = None,
    where: Where | None = None,
) -> Select:
    stmt = select(model).where(*build_where(model, where))
    options = loader_options(model, include, fields)
    if options:
        stmt = stmt.options(*options)
    return stmt


def validate_body(model: type, body: Mapping[str, Any]) -> dict[str, Any]:
    """Reject keys that are not mapped columns of ``model``."""
    known = set(column_names(model))
    unknown = [key for key in body if key not in known]
    if unknown:
        raise ValidationError(
            "Unknown fields in body",
            entity=entity_name(model),
            fields=unknown,
        )
    return dict(body)


def json_safe(value: Any) -> Any:
    """Convert a column value to a JSON-compatible value."""
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (uuid.UUID, Decimal)):
        return str(value)
    if isinstance(value, dict):
        return {key: json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(item) for item in value]
    return value


def serialize_entity(
    obj: Any,
    include: Sequence[str] | None = None,
    fields: Sequence[str] | None = None,
) -> dict[str, Any]:
    """
    Snapshot a loaded ORM object as a plain dict.

    Only ``fields`` are emitted when given; included relationships are
    emitted as nested snapshots (a list for collections).
    """
    mapper = _mapper(type(obj))
    keys = list(fields) if fields else [attr.key for attr in mapper.column_attrs]
    data = {key: json_safe(getattr(obj, key)) for key in keys}

    for name in include or ():
        related = getattr(obj, name)
        if related is None:
            data[name] = None
        elif mapper.relationships[name].uselist:
            data[name] = [serialize_entity(item) for item in related]
        else:
            data[name] = serialize_entity(related)
    return data


@contextmanager
def store_operation(operation: str, entity: str) -> Iterator[None]:
    """
    Wrap driver failures raised inside the block into ``DatabaseError``.

    Usage:
        with store_operation("update", "device"):
            db.flush()
    """
    try:
        yield
    except SQLAlchemyError as exc:
        raise DatabaseError(
            operation,
            entity=entity,
            error=exc.__class__.__name__,
        ) from exc
