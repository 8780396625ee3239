"""
Repository facade binding the CRUD helpers to one entity type.

Usage:
    class DeviceRepository(BaseRepository):
        default_include = ("sensors",)

        def __init__(self, cache: Cache):
            super().__init__(Device, cache)

    repo = DeviceRepository(RedisCache(get_redis_sync_client()))
    with get_db_context(SessionLocal) as db:
        device = repo.create(True, ctx, {"name": "gw-01"}, db)
        safe_commit(db)
"""

from __future__ import annotations

from typing import Any, ClassVar, Generic, Mapping, Sequence, TypeVar

from sqlalchemy.orm import Session

from shared.infrastructure.cache import Cache

from datastore.context import RequestContext
from datastore.crud import read, write
from datastore.crud.delete import delete as delete_entity, delete_batch
from datastore.crud.query import Where, entity_name, merge_where
from datastore.models import Audit, Base
from datastore.schemas import BatchResult, Entity, ListCursorResult, ListPaginationResult

ModelT = TypeVar("ModelT", bound=Base)

AUDIT_LIST_FIELDS = ("id", "change_count", "action", "username", "created_at")


class BaseRepository(Generic[ModelT]):
    """
    Audited, cached data access for one mapped model.

    Subclasses may set ``default_include``, ``default_fields`` and
    ``default_where``; they apply whenever the caller passes nothing.
    """

    default_include: ClassVar[Sequence[str] | None] = None
    default_fields: ClassVar[Sequence[str] | None] = None
    default_where: ClassVar[Mapping[str, Any] | None] = None

    def __init__(self, model: type[ModelT], cache: Cache | None = None):
        self._model = model
        self._cache = cache

    @property
    def model(self) -> type[ModelT]:
        """The SQLAlchemy model class."""
        return self._model

    @property
    def entity(self) -> str:
        return entity_name(self._model)

    def _include(self, include: Sequence[str] | None) -> Sequence[str] | None:
        return self.default_include if include is None else include

    def _fields(self, fields: Sequence[str] | None) -> Sequence[str] | None:
        return self.default_fields if fields is None else fields

    def _where(self, where: Where | None) -> dict[str, Any]:
        return merge_where(self.default_where, where)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_by_id(
        self,
        entity_id: Any,
        db: Session,
        include: Sequence[str] | None = None,
        fields: Sequence[str] | None = None,
    ) -> Entity:
        return read.get_by_id(
            db,
            self._model,
            entity_id,
            cache=self._cache,
            include=self._include(include),
            fields=self._fields(fields),
        )

    def get(
        self,
        db: Session,
        include: Sequence[str] | None = None,
        fields: Sequence[str] | None = None,
        where: Where | None = None,
    ) -> Entity | None:
        return read.get(
            db,
            self._model,
            include=self._include(include),
            fields=self._fields(fields),
            where=self._where(where),
        )

    def get_many(
        self,
        db: Session,
        include: Sequence[str] | None = None,
        fields: Sequence[str] | None = None,
        where: Where | None = None,
    ) -> list[Entity]:
        return read.get_many(
            db,
            self._model,
            include=self._include(include),
            fields=self._fields(fields),
            where=self._where(where),
        )

    def list_dropdown(self, ctx: RequestContext, db: Session) -> list[Entity]:
        return read.list_dropdown(ctx, db, self._model, where=self.default_where)

    def list_pagination(
        self,
        ctx: RequestContext,
        db: Session,
        where: Where | None = None,
        fields: Sequence[str] | None = None,
    ) -> ListPaginationResult[Entity]:
        """Offset page; projected to {id, name} unless ``fields`` is given."""
        fields = self._fields(fields)
        if fields is None:
            return read.list_pagination(ctx, db, self._model, where=self._where(where))
        return read.list_pagination_with_include(
            ctx, db, self._model, where=self._where(where), fields=fields
        )

    def list_cursor(
        self,
        ctx: RequestContext,
        db: Session,
        include: Sequence[str] | None = None,
        where: Where | None = None,
    ) -> ListCursorResult[Entity]:
        return read.list_cursor(
            ctx,
            db,
            self._model,
            include=self._include(include),
            where=self._where(where),
        )

    # =========================================================================
    # Writes
    # =========================================================================

    def create(
        self,
        is_audited: bool,
        ctx: RequestContext,
        body: Mapping[str, Any],
        db: Session,
        include: Sequence[str] | None = None,
        fields: Sequence[str] | None = None,
    ) -> Entity:
        return write.create(
            is_audited,
            ctx,
            body,
            db,
            self._model,
            cache=self._cache,
            include=self._include(include),
            fields=self._fields(fields),
        )

    def create_many(self, body: Sequence[Mapping[str, Any]], db: Session) -> BatchResult:
        return write.create_many(body, db, self._model)

    def upsert(
        self,
        is_audited: bool,
        ctx: RequestContext,
        name: str,
        db: Session,
        create_body: Mapping[str, Any],
        update_body: Mapping[str, Any],
        include: Sequence[str] | None = None,
        fields: Sequence[str] | None = None,
        where: Where | None = None,
    ) -> Entity:
        return write.upsert(
            is_audited,
            ctx,
            name,
            db,
            self._model,
            create_body,
            update_body,
            include=self._include(include),
            fields=self._fields(fields),
            where=self._where(where),
        )

    def update(
        self,
        is_audited: bool,
        ctx: RequestContext,
        entity_id: Any,
        body: Mapping[str, Any],
        db: Session,
        include: Sequence[str] | None = None,
        fields: Sequence[str] | None = None,
        where: Where | None = None,
    ) -> Entity:
        return write.update(
            is_audited,
            ctx,
            entity_id,
            body,
            db,
            self._model,
            cache=self._cache,
            include=self._include(include),
            fields=self._fields(fields),
            where=self._where(where),
        )

    def delete(
        self,
        is_audited: bool,
        ctx: RequestContext,
        entity_id: Any,
        db: Session,
        include: Sequence[str] | None = None,
        fields: Sequence[str] | None = None,
        where: Where | None = None,
    ) -> Entity:
        return delete_entity(
            is_audited,
            ctx,
            entity_id,
            db,
            self._model,
            cache=self._cache,
            include=self._include(include),
            fields=self._fields(fields),
            where=self._where(where),
        )

    def delete_batch(
        self,
        ids: Sequence[Any],
        db: Session,
        where: Where | None = None,
    ) -> BatchResult:
        return delete_batch(
            ids, db, self._model, cache=self._cache, where=self._where(where)
        )

    # =========================================================================
    # Audit history
    # =========================================================================

    def get_audits(self, ctx: RequestContext, db: Session) -> ListPaginationResult[Entity]:
        """Offset page of this entity type's audit records (summary columns only)."""
        return read.list_pagination_with_include(
            ctx,
            db,
            Audit,
            where={"auditable": self.entity},
            fields=AUDIT_LIST_FIELDS,
        )

    def get_audit(self, db: Session, audit_id: str) -> Entity | None:
        """One full audit record of this entity type, or None."""
        return read.get(db, Audit, where={"id": audit_id, "auditable": self.entity})
