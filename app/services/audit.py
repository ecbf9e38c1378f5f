"""Audit trail for canvas lifecycle, sharing and asset events.

Entries are added to the caller's session and land in the same commit as
the change they describe; a rolled-back change leaves no audit row behind.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.request_context import get_request_id, get_user_id
from app.db.models import AuditLog


AUDITED_ENTITIES = frozenset({"canvas", "canvas_share", "canvas_asset"})


def record_audit(
    db: Session,
    entity_type: str,
    entity_id: uuid.UUID,
    action: str,
    *,
    actor_user_id: str | None = None,
    old_value: dict[str, Any] | None = None,
    new_value: dict[str, Any] | None = None,
) -> AuditLog:
    if entity_type not in AUDITED_ENTITIES:
        raise ValueError(f"unknown audit entity type: {entity_type}")
    entry = AuditLog(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_user_id=actor_user_id or get_user_id(),
        request_id=get_request_id(),
        old_value=old_value,
        new_value=new_value,
    )
    db.add(entry)
    return entry


def audit_trail(db: Session, entity_id: uuid.UUID) -> list[AuditLog]:
    return list(
        db.execute(
            select(AuditLog)
            .where(AuditLog.entity_id == entity_id)
            .order_by(AuditLog.created_at.asc())
        )
        .scalars()
        .all()
    )
