"""
Tree reconstruction for adjacency-list tables (id, parent_id, name).

The recursive query gathers the flat row set; ``build_tree`` links it into
nodes in memory. Entities are hydrated through the regular CRUD shaping so
``include`` works the same as for point reads.

Usage:
    repo = TreeRepository(Location)
    forest = repo.find_trees(db, include=["devices"])
    subtree = repo.find_descendants_tree(db, "loc-1")
    repo.ensure_no_cycle(db, "loc-1", new_parent_id="loc-7")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Collection, Iterable, Mapping, Sequence

from sqlalchemy import exists, or_, select
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from shared.config.constants import (
    HYDRATE_CHUNK_SIZE,
    TREE_ID_COLUMN,
    TREE_NAME_COLUMN,
    TREE_PARENT_COLUMN,
)
from shared.config.logging import get_logger
from shared.utils.exceptions import CyclicReferenceError

from datastore.crud.query import (
    coerce_id,
    entity_name,
    json_safe,
    select_entities,
    serialize_entity,
    store_operation,
)

logger = get_logger(__name__)


@dataclass
class TreeNode:
    """One entity in a reconstructed tree; ``data`` is its full snapshot."""

    id: Any
    parent_id: Any
    name: str | None
    data: dict[str, Any] = field(default_factory=dict)
    children: list[TreeNode] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.data,
            "id": self.id,
            "parent_id": self.parent_id,
            "name": self.name,
            "children": [child.to_dict() for child in self.children],
        }


def build_tree(
    rows: Iterable[Mapping[str, Any]],
    *,
    id_key: str = "id",
    parent_key: str = "parent_id",
    name_key: str = "name",
    root_ids: Collection[Any] = (),
) -> list[TreeNode]:
    """
    Link flat rows into an ordered forest.

    Every row is indexed before any linking, so a child may precede its
    parent in the input. A row whose parent is null, missing from the set or
    itself becomes a root, as does any id in ``root_ids``. Siblings keep
    their input order; repeated ids are ignored after the first occurrence.
    """
    nodes: dict[Any, TreeNode] = {}
    for row in rows:
        node_id = row[id_key]
        if node_id in nodes:
            continue
        nodes[node_id] = TreeNode(
            id=node_id,
            parent_id=row.get(parent_key),
            name=row.get(name_key),
            data=dict(row),
        )

    roots: list[TreeNode] = []
    for node in nodes.values():
        parent = None
        if node.id not in root_ids and node.parent_id != node.id:
            parent = nodes.get(node.parent_id)
        if parent is None:
            roots.append(node)
        else:
            parent.children.append(node)
    return roots


class TreeRepository:
    """
    Recursive tree queries over one self-referencing model.

    The table must expose id, parent and name columns; their names default
    to ``id``, ``parent_id`` and ``name``.
    """

    def __init__(
        self,
        model: type,
        *,
        id_column: str = TREE_ID_COLUMN,
        parent_column: str = TREE_PARENT_COLUMN,
        name_column: str = TREE_NAME_COLUMN,
    ):
        self._model = model
        self._table = model.__table__
        self._id_name = id_column
        self._parent_name = parent_column
        self._name_name = name_column

    @property
    def entity(self) -> str:
        return entity_name(self._model)

    def _columns(self, table: Any) -> tuple[Any, Any, Any]:
        return (
            table.c[self._id_name],
            table.c[self._parent_name],
            table.c[self._name_name],
        )

    def _top_level(self, table: Any) -> Any:
        """Rows without a parent, with a dangling parent, or parented to themselves."""
        node_id, parent_id, _ = self._columns(table)
        parent = self._table.alias("parent")
        return or_(
            parent_id.is_(None),
            parent_id == node_id,
            ~exists().where(parent.c[self._id_name] == parent_id),
        )

    def _closure_query(self, root_id: Any | None = None) -> Select:
        """
        Recursive query producing (id, parent_id, name) for a forest or subtree.

        The anchor is every top-level row, or the single ``root_id`` row.
        Self-parented rows and the root itself are never re-entered, so the
        recursion terminates even on corrupted parent links.
        """
        base = self._table.alias("base")
        node_id, parent_id, name = self._columns(base)
        anchor = select(
            node_id.label("id"),
            parent_id.label("parent_id"),
            name.label("name"),
        )
        if root_id is None:
            anchor = anchor.where(self._top_level(base))
        else:
            anchor = anchor.where(node_id == root_id)

        nodes = anchor.cte("tree_nodes", recursive=True)

        child = self._table.alias("child")
        child_id, child_parent, child_name = self._columns(child)
        step = (
            select(child_id, child_parent, child_name)
            .select_from(child.join(nodes, child_parent == nodes.c.id))
            .where(child_id != child_parent)
        )
        if root_id is not None:
            step = step.where(child_id != root_id)

        nodes = nodes.union_all(step)
        return select(nodes.c.id, nodes.c.parent_id, nodes.c.name).order_by(
            nodes.c.name, nodes.c.id
        )

    def _hydrate(
        self,
        db: Session,
        rows: Sequence[Any],
        include: Sequence[str] | None,
    ) -> list[dict[str, Any]]:
        """Full entity snapshots for the gathered rows, in row order."""
        if not rows:
            return []
        ids = [row.id for row in rows]
        ident = self._table.c[self._id_name]
        objects = []
        with store_operation("tree_hydrate", self.entity):
            for start in range(0, len(ids), HYDRATE_CHUNK_SIZE):
                chunk = ids[start : start + HYDRATE_CHUNK_SIZE]
                stmt = select_entities(self._model, include=include).where(ident.in_(chunk))
                objects.extend(db.scalars(stmt).all())
        snapshots = {
            getattr(obj, self._id_name): serialize_entity(obj, include) for obj in objects
        }

        hydrated = []
        for row in rows:
            snapshot = snapshots.get(row.id, {})
            hydrated.append(
                {
                    **snapshot,
                    "id": json_safe(row.id),
                    "parent_id": json_safe(row.parent_id),
                    "name": row.name,
                }
            )
        return hydrated

    def find_roots(self, db: Session, include: Sequence[str] | None = None) -> list[TreeNode]:
        """Top-level nodes only, without descending into children."""
        base = self._table.alias("base")
        node_id, parent_id, name = self._columns(base)
        stmt = (
            select(node_id.label("id"), parent_id.label("parent_id"), name.label("name"))
            .where(self._top_level(base))
            .order_by(name, node_id)
        )
        with store_operation("find_roots", self.entity):
            rows = db.execute(stmt).all()
        return [
            TreeNode(id=row["id"], parent_id=row["parent_id"], name=row["name"], data=row)
            for row in self._hydrate(db, rows, include)
        ]

    def find_trees(self, db: Session, include: Sequence[str] | None = None) -> list[TreeNode]:
        """Every tree of the table, each root carrying its full subtree."""
        with store_operation("find_trees", self.entity):
            rows = db.execute(self._closure_query()).all()
        forest = build_tree(self._hydrate(db, rows, include))
        logger.debug("Trees built", entity=self.entity, nodes=len(rows), roots=len(forest))
        return forest

    def find_descendants_tree(
        self,
        db: Session,
        root_id: Any,
        include: Sequence[str] | None = None,
    ) -> TreeNode | None:
        """The subtree rooted at ``root_id``, or None when the id does not exist."""
        ident = coerce_id(self._model, root_id)
        with store_operation("find_descendants_tree", self.entity):
            rows = db.execute(self._closure_query(ident)).all()
        forest = build_tree(self._hydrate(db, rows, include), root_ids={json_safe(ident)})
        return next((node for node in forest if str(node.id) == str(root_id)), None)

    def find_descendant_ids(self, db: Session, root_id: Any) -> list[Any]:
        """Ids of every node below ``root_id`` (the root itself excluded)."""
        ident = coerce_id(self._model, root_id)
        with store_operation("find_descendants", self.entity):
            rows = db.execute(self._closure_query(ident)).all()
        return [row.id for row in rows if row.id != ident]

    def ensure_no_cycle(self, db: Session, node_id: Any, new_parent_id: Any | None) -> None:
        """
        Reject re-parenting ``node_id`` under itself or one of its descendants.

        Raises:
            CyclicReferenceError: If the move would create a cycle.
        """
        if new_parent_id is None:
            return
        parent = coerce_id(self._model, new_parent_id)
        if parent == coerce_id(self._model, node_id) or parent in self.find_descendant_ids(
            db, node_id
        ):
            raise CyclicReferenceError(self.entity, node_id, new_parent_id)
