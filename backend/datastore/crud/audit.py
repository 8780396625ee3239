"""
Audit log helpers.
Records entity changes as immutable Audit rows in the caller's transaction.
"""

from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from shared.config.constants import AuditAction
from shared.config.logging import get_logger, mask_user_id

from datastore.context import UserContext
from datastore.crud.query import json_safe, store_operation
from datastore.models import Audit

logger = get_logger(__name__)


def next_change_count(db: Session, entity_type: str, entity_id: Any) -> int:
    """
    Next change_count for (entity_type, entity_id).

    Returns the latest record's change_count + 1, or 0 when the entity has no
    history. A missing id (nothing existed before) always starts at 0 and
    never matches another entity's history.
    """
    if entity_id is None:
        return 0

    stmt = (
        select(Audit.change_count)
        .where(
            Audit.auditable == entity_type,
            Audit.auditable_id == str(entity_id),
        )
        .order_by(Audit.created_at.desc(), Audit.change_count.desc())
        .limit(1)
    )
    with store_operation("audit_lookup", entity_type):
        latest = db.scalar(stmt)
    return 0 if latest is None else latest + 1


def append(
    db: Session,
    user: UserContext,
    *,
    entity_type: str,
    entity_id: Any,
    previous: Optional[dict],
    incoming: Optional[dict],
    action: AuditAction,
    change_count: Optional[int] = None,
) -> Audit:
    """
    Write one audit record.

    Args:
        db: Session inside the caller's transaction
        user: Acting user (id and name are recorded)
        entity_type: Audited table name
        entity_id: Id of the changed entity
        previous: Snapshot before the change ({} for CREATE)
        incoming: Snapshot after the change ({} for DELETE)
        action: CREATE, UPDATE or DELETE
        change_count: Precomputed count; looked up when omitted

    Returns:
        The flushed Audit row
    """
    if change_count is None:
        change_count = next_change_count(db, entity_type, entity_id)

    record = Audit(
        auditable=entity_type,
        auditable_id=str(entity_id),
        change_count=change_count,
        previous=json_safe(previous or {}),
        incoming=json_safe(incoming or {}),
        action=action,
        username=user.name,
        user_id=str(user.id),
    )
    db.add(record)
    # Don't commit here - the caller owns the transaction
    with store_operation("audit", entity_type):
        db.flush()

    logger.debug(
        "Audit appended",
        entity=entity_type,
        entity_id=entity_id,
        action=action.value,
        change_count=change_count,
        user_id=mask_user_id(user.id),
    )
    return record
