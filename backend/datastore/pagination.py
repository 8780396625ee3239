"""
Standardized pagination for list operations.

Pure functions: parse raw query parameters from the request context into
typed offset/cursor requests and compute the metadata returned with a page.
No I/O happens here.

Raw query shape:
    {
        "search": "...",
        "filters": {
            "pagination": {"page": 1, "limit": 10} | {"cursor": "...", "limit": 10},
            "sort": {"by": "name", "mode": "asc"},
            "field": {"status": {"equals": "ACTIVE"}},
        },
    }

Any of ``pagination``, ``sort`` and ``field`` may arrive JSON-encoded.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from shared.config.constants import Limits, SortMode
from shared.config.settings import settings
from shared.utils.exceptions import ValidationError
from shared.utils.validators import decode_json_param

from datastore.schemas import CursorMeta, PaginationMeta

FILTER_KEYS = ("pagination", "sort", "field")


class _SortParams(BaseModel):
    model_config = ConfigDict(extra="ignore")

    by: str = "id"
    mode: SortMode = SortMode.ASC

    @field_validator("mode", mode="before")
    @classmethod
    def _lower_mode(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value


class _OffsetParams(BaseModel):
    model_config = ConfigDict(extra="ignore")

    page: int = Field(default=Limits.DEFAULT_PAGE, ge=1)
    limit: int | None = Field(default=None, ge=Limits.MIN_PAGE_SIZE)


class _CursorParams(BaseModel):
    model_config = ConfigDict(extra="ignore")

    cursor: str | int | None = None
    limit: int | None = Field(default=None, ge=Limits.MIN_PAGE_SIZE)


@dataclass
class Sort:
    """Requested ordering; ``id`` is always appended as a tiebreaker."""

    by: str = "id"
    mode: SortMode = SortMode.ASC

    @property
    def descending(self) -> bool:
        return self.mode == SortMode.DESC


@dataclass
class PaginationQuery:
    """
    Offset pagination request.

    Attributes:
        page: 1-indexed page number
        limit: Items per page (1 to max_page_size)
        sort: Requested ordering
        field: Request-supplied field filters
    """

    page: int
    limit: int
    sort: Sort = field(default_factory=Sort)
    field: dict[str, Any] = field(default_factory=dict)

    @property
    def offset(self) -> int:
        """Number of rows to skip: (page - 1) * limit."""
        return (self.page - 1) * self.limit


@dataclass
class CursorQuery:
    """Cursor pagination request; cursor is the id of the last row seen."""

    cursor: str | None
    limit: int
    sort: Sort = field(default_factory=Sort)
    field: dict[str, Any] = field(default_factory=dict)


def _raise_invalid(exc: PydanticValidationError, section: str) -> None:
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"]) or section,
            "value": err.get("input"),
            "errors": err["msg"],
        }
        for err in exc.errors()
    ]
    raise ValidationError(f"Invalid {section} filter", params=errors) from exc


def _filters(query: Mapping[str, Any] | None) -> dict[str, Any]:
    """Extract and JSON-decode the ``filters`` section of a raw query."""
    raw = decode_json_param("filters", (query or {}).get("filters")) or {}
    if not isinstance(raw, Mapping):
        raise ValidationError("Invalid filters", field="filters", value=raw)

    filters = dict(raw)
    for key in FILTER_KEYS:
        if key in filters:
            filters[key] = decode_json_param(key, filters[key])
    return filters


def _section(filters: Mapping[str, Any], key: str) -> dict[str, Any]:
    value = filters.get(key) or {}
    if not isinstance(value, Mapping):
        raise ValidationError(f"Invalid {key} filter", field=key, value=value)
    return dict(value)


def _clamp_limit(limit: int | None, default_limit: int | None, max_limit: int | None) -> int:
    max_limit = max_limit or settings.max_page_size
    if limit is None:
        limit = default_limit or settings.default_page_size
    return min(max(Limits.MIN_PAGE_SIZE, limit), max_limit)


def parse_sort(filters: Mapping[str, Any]) -> Sort:
    try:
        params = _SortParams.model_validate(_section(filters, "sort"))
    except PydanticValidationError as exc:
        _raise_invalid(exc, "sort")
    return Sort(by=params.by, mode=params.mode)


def parse_pagination_query(
    query: Mapping[str, Any] | None,
    *,
    default_limit: int | None = None,
    max_limit: int | None = None,
) -> PaginationQuery:
    """
    Parse offset pagination from raw query parameters.

    Raises:
        ValidationError: On malformed JSON, non-numeric or out-of-range values.
    """
    filters = _filters(query)
    try:
        params = _OffsetParams.model_validate(_section(filters, "pagination"))
    except PydanticValidationError as exc:
        _raise_invalid(exc, "pagination")

    return PaginationQuery(
        page=params.page,
        limit=_clamp_limit(params.limit, default_limit, max_limit),
        sort=parse_sort(filters),
        field=_section(filters, "field"),
    )


def parse_cursor_query(
    query: Mapping[str, Any] | None,
    *,
    default_limit: int | None = None,
    max_limit: int | None = None,
) -> CursorQuery:
    """
    Parse cursor pagination from raw query parameters.

    An empty cursor string means "first page".
    """
    filters = _filters(query)
    try:
        params = _CursorParams.model_validate(_section(filters, "pagination"))
    except PydanticValidationError as exc:
        _raise_invalid(exc, "pagination")

    cursor = None if params.cursor in (None, "") else str(params.cursor)
    return CursorQuery(
        cursor=cursor,
        limit=_clamp_limit(params.limit, default_limit, max_limit),
        sort=parse_sort(filters),
        field=_section(filters, "field"),
    )


def pagination_meta(*, total: int, page: int, limit: int) -> PaginationMeta:
    """Metadata for an offset page: total_pages = ceil(total / limit)."""
    total_pages = math.ceil(total / limit) if limit > 0 else 1
    return PaginationMeta(total=total, page=page, limit=limit, total_pages=total_pages)


def cursor_meta(*, result: Sequence[Mapping[str, Any]], total: int, id_key: str = "id") -> CursorMeta:
    """Metadata for a cursor page; last_cursor is the id of the final row or ""."""
    last_cursor = str(result[-1][id_key]) if result else ""
    return CursorMeta(last_cursor=last_cursor, total=total)
