"""
Generic data-access layer between use-cases and the relational store.

- crud: audited create/update/delete, cached reads, offset/cursor pages
- pagination: query parameter parsing and page metadata
- tree: recursive tree reconstruction for adjacency-list tables
- graph: cycle-safe path discovery over self-referencing edge tables

Every helper works inside the caller's open Session and never commits.
"""

from datastore.context import RequestContext, RequestParams, UserContext
from datastore.crud import BaseRepository
from datastore.graph import GraphEdge, GraphPath, GraphRepository
from datastore.schemas import (
    BatchResult,
    CursorMeta,
    Entity,
    ListCursorResult,
    ListPaginationResult,
    PaginationMeta,
)
from datastore.tree import TreeNode, TreeRepository, build_tree

__all__ = [
    # context
    "RequestContext",
    "RequestParams",
    "UserContext",
    # results
    "BatchResult",
    "CursorMeta",
    "Entity",
    "ListCursorResult",
    "ListPaginationResult",
    "PaginationMeta",
    # repositories
    "BaseRepository",
    "TreeRepository",
    "GraphRepository",
    # structures
    "TreeNode",
    "build_tree",
    "GraphEdge",
    "GraphPath",
]
