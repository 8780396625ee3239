"""
CRUD helpers for any mapped entity type.

- read: cached point lookups, filtered finds, offset and cursor pages
- write: audited create/upsert/update and unaudited bulk create
- delete: audited delete and unaudited batch delete
- audit: change_count sequencing and audit record appends
- repository: BaseRepository facade binding the helpers to one model
"""

from datastore.crud import audit
from datastore.crud.delete import delete, delete_batch
from datastore.crud.read import (
    get,
    get_by_id,
    get_many,
    list_cursor,
    list_dropdown,
    list_pagination,
    list_pagination_with_include,
)
from datastore.crud.repository import BaseRepository
from datastore.crud.write import create, create_many, update, upsert

__all__ = [
    "audit",
    # read
    "get",
    "get_by_id",
    "get_many",
    "list_cursor",
    "list_dropdown",
    "list_pagination",
    "list_pagination_with_include",
    # write
    "create",
    "create_many",
    "update",
    "upsert",
    # delete
    "delete",
    "delete_batch",
    # facade
    "BaseRepository",
]
