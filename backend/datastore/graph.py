"""
Graph path discovery over a self-referencing many-to-many edge table.

An edge table has two columns (``A`` -> ``B`` by default). Paths are found
with a recursive CTE named ``distance_graph``:

- anchor: every direct edge, path = [A, B]
- step: extend a path with an edge leaving its last node, unless the new
  node is already on the path

The path column is a native array on PostgreSQL and a delimited string
everywhere else; callers always receive ``GraphPath.path`` as a tuple of ids.
The representation is chosen once when the repository is built.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Sequence

from sqlalchemy import String, Table, all_, cast, literal, select
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Session
from sqlalchemy.sql import ColumnElement, Select

from shared.config.constants import EDGE_SOURCE_COLUMN, EDGE_TARGET_COLUMN, PATH_DELIMITER, PathDialect
from shared.config.logging import get_logger
from shared.utils.exceptions import CyclicReferenceError, InternalError

from datastore.crud.query import Where, store_operation
from datastore.crud.read import get_many
from datastore.dialect import resolve_path_dialect
from datastore.schemas import Entity

logger = get_logger(__name__)

PATH_CTE_NAME = "distance_graph"


@dataclass(frozen=True)
class GraphEdge:
    """A directed edge source -> target."""

    source: Any
    target: Any

    def to_dict(self) -> dict[str, Any]:
        return {"A": self.source, "B": self.target}


@dataclass(frozen=True)
class GraphPath:
    """A simple path from ``source`` to ``target``; ``path`` includes both ends."""

    source: str
    target: str
    path: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"A": self.source, "B": self.target, "path": list(self.path)}


def _as_text(column: Any) -> ColumnElement:
    return cast(column, String())


class RecursivePathQueryBuilder(ABC):
    """Builds the dialect-specific recursive path query for one edge table."""

    dialect: PathDialect

    def __init__(
        self,
        source_column: str = EDGE_SOURCE_COLUMN,
        target_column: str = EDGE_TARGET_COLUMN,
    ):
        self.source_column = source_column
        self.target_column = target_column

    @abstractmethod
    def initial_path(self, source: ColumnElement, target: ColumnElement) -> ColumnElement:
        """Path expression for a single edge."""

    @abstractmethod
    def extend_path(self, path: ColumnElement, node: ColumnElement) -> ColumnElement:
        """Path expression with ``node`` appended."""

    @abstractmethod
    def excludes(self, path: ColumnElement, node: ColumnElement) -> ColumnElement:
        """Criterion true when ``node`` is not on ``path``."""

    @abstractmethod
    def decode(self, value: Any) -> tuple[str, ...]:
        """Path column value as an ordered tuple of ids."""

    def build(self, edges: Table, from_id: Any | None = None) -> Select:
        """
        Select (A, B, path) for every simple path of the graph.

        ``from_id`` filters the final selection only; the recursion itself
        still explores the whole graph.
        """
        base = edges.alias("gg")
        source = _as_text(base.c[self.source_column])
        target = _as_text(base.c[self.target_column])
        anchor = select(
            source.label("A"),
            target.label("B"),
            self.initial_path(source, target).label("path"),
        ).where(base.c[self.source_column] != base.c[self.target_column])

        paths = anchor.cte(PATH_CTE_NAME, recursive=True)

        step_edges = edges.alias("g")
        step_source = _as_text(step_edges.c[self.source_column])
        step_target = _as_text(step_edges.c[self.target_column])
        step = (
            select(
                paths.c.A,
                step_target,
                self.extend_path(paths.c.path, step_target),
            )
            .select_from(step_edges.join(paths, step_source == paths.c.B))
            .where(self.excludes(paths.c.path, step_target))
        )
        paths = paths.union_all(step)

        stmt = select(paths.c.A, paths.c.B, paths.c.path)
        if from_id is not None:
            stmt = stmt.where(paths.c.A == str(from_id))
        return stmt


class ArrayPathQueryBuilder(RecursivePathQueryBuilder):
    """PostgreSQL: path is varchar[], membership via ``!= ALL(path)``."""

    dialect = PathDialect.ARRAY

    def initial_path(self, source, target):
        return cast(postgresql.array([source, target]), postgresql.ARRAY(String()))

    def extend_path(self, path, node):
        return path + cast(postgresql.array([node]), postgresql.ARRAY(String()))

    def excludes(self, path, node):
        return node != all_(path)

    def decode(self, value):
        return tuple(str(item) for item in value or ())


class DelimitedPathQueryBuilder(RecursivePathQueryBuilder):
    """
    Path is a delimited string, e.g. "a,b,c".

    Membership is delimiter-guarded: ",a,b,c," NOT LIKE "%,b,%", so id 1 is
    never mistaken for part of id 11.
    """

    dialect = PathDialect.DELIMITED

    def __init__(self, *args: Any, delimiter: str = PATH_DELIMITER, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.delimiter = delimiter

    def _literal(self, text: str) -> ColumnElement:
        return literal(text, String(), literal_execute=True)

    def initial_path(self, source, target):
        return cast(source + self._literal(self.delimiter) + target, String())

    def extend_path(self, path, node):
        return cast(path + self._literal(self.delimiter) + node, String())

    def excludes(self, path, node):
        guarded_path = self._literal(self.delimiter) + path + self._literal(self.delimiter)
        pattern = (
            self._literal(f"%{self.delimiter}") + node + self._literal(f"{self.delimiter}%")
        )
        return guarded_path.not_like(pattern)

    def decode(self, value):
        if not value:
            return ()
        return tuple(value.split(self.delimiter))


def path_query_builder(
    dialect: PathDialect,
    source_column: str = EDGE_SOURCE_COLUMN,
    target_column: str = EDGE_TARGET_COLUMN,
) -> RecursivePathQueryBuilder:
    if dialect == PathDialect.ARRAY:
        return ArrayPathQueryBuilder(source_column, target_column)
    return DelimitedPathQueryBuilder(source_column, target_column)


class GraphRepository:
    """
    Edges, nodes and simple paths of one directed self-relation.

    Usage:
        repo = GraphRepository(device_links, db, node_model=Device)
        repo.find_path_by_from_id(db, "d-1")
        repo.ensure_acyclic_edge(db, "d-3", "d-1")
    """

    def __init__(
        self,
        edges: Any,
        bind: Any,
        *,
        source_column: str = EDGE_SOURCE_COLUMN,
        target_column: str = EDGE_TARGET_COLUMN,
        node_model: type | None = None,
        dialect: str | None = None,
    ):
        self._edges: Table = getattr(edges, "__table__", edges)
        self._source_column = source_column
        self._target_column = target_column
        self._node_model = node_model
        self.dialect = resolve_path_dialect(bind, dialect)
        self._builder = path_query_builder(self.dialect, source_column, target_column)

    @property
    def entity(self) -> str:
        return self._edges.name

    def find_nodes(
        self,
        db: Session,
        include: Sequence[str] | None = None,
        where: Where | None = None,
    ) -> list[Entity]:
        if self._node_model is None:
            raise InternalError("Graph repository has no node model", entity=self.entity)
        return get_many(db, self._node_model, include=include, where=where)

    def find_edges(self, db: Session) -> list[GraphEdge]:
        source = self._edges.c[self._source_column]
        target = self._edges.c[self._target_column]
        stmt = select(source, target).order_by(source, target)
        with store_operation("find_edges", self.entity):
            rows = db.execute(stmt).all()
        return [GraphEdge(source=row[0], target=row[1]) for row in rows]

    def _paths(self, db: Session, stmt: Select) -> list[GraphPath]:
        with store_operation("find_path", self.entity):
            rows = db.execute(stmt).all()

        paths = []
        for row in rows:
            nodes = self._builder.decode(row.path)
            if len(set(nodes)) != len(nodes):
                raise CyclicReferenceError(self.entity, row.A, row.B, path=list(nodes))
            paths.append(GraphPath(source=row.A, target=row.B, path=nodes))

        paths.sort(key=lambda item: (item.source, len(item.path), item.path))
        return paths

    def find_path(self, db: Session) -> list[GraphPath]:
        """Every simple path in the graph."""
        return self._paths(db, self._builder.build(self._edges))

    def find_path_by_from_id(self, db: Session, from_id: Any) -> list[GraphPath]:
        """Every simple path starting at ``from_id``."""
        return self._paths(db, self._builder.build(self._edges, from_id))

    def ensure_acyclic_edge(self, db: Session, source: Any, target: Any) -> None:
        """
        Reject an edge source -> target that would close a cycle.

        Raises:
            CyclicReferenceError: If source == target or target already reaches source.
        """
        if str(source) == str(target):
            raise CyclicReferenceError(self.entity, source, target)
        reachable = {path.target for path in self.find_path_by_from_id(db, target)}
        if str(source) in reachable:
            raise CyclicReferenceError(self.entity, source, target)
