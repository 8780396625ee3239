"""
Audit Model.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Enum, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from shared.config.constants import AuditAction

from .base import Base, new_uuid


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Audit(Base):
    """
    Immutable change record, one per audited create/update/delete.

    change_count is monotonic per (auditable, auditable_id) starting at 0.
    Records are append-only: nothing in the datastore updates or deletes them.
    """

    __tablename__ = "audit"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    # What was changed
    auditable: Mapped[str] = mapped_column(String(255), nullable=False)
    auditable_id: Mapped[str] = mapped_column(String(255), nullable=False)
    change_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    action: Mapped[AuditAction] = mapped_column(
        Enum(AuditAction, name="audit_action"), nullable=False
    )

    # Snapshots (JSON); {} when there is no previous/incoming state
    previous: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    incoming: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Who made the change
    username: Mapped[Optional[str]] = mapped_column(String(255))
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Python-side default keeps ordering distinct inside one transaction
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        Index("ix_audit_auditable_entity", "auditable", "auditable_id", "created_at"),
    )
