"""
Result types returned by the datastore.

Entities are JSON-safe snapshots (``dict``), so list results wrap plain
dictionaries together with their metadata.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel

EntityT = TypeVar("EntityT")

Entity = dict[str, Any]


class PaginationMeta(BaseModel):
    """Metadata of an offset-paginated page."""

    total: int
    page: int
    limit: int
    total_pages: int


class CursorMeta(BaseModel):
    """Metadata of a cursor page; last_cursor is "" for an empty page."""

    last_cursor: str
    total: int


class ListPaginationResult(BaseModel, Generic[EntityT]):
    result: list[EntityT]
    meta: PaginationMeta


class ListCursorResult(BaseModel, Generic[EntityT]):
    result: list[EntityT]
    meta: CursorMeta


class BatchResult(BaseModel):
    """Outcome of a bulk create/delete."""

    count: int
