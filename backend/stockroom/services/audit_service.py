# Overview: Append-only audit trail writes and reads.

from __future__ import annotations

from ..extensions import db
from ..errors import InvalidInputError
from ..models import AuditTrail
from ..models.documents import AUDIT_ACTIONS
"""
Audit trail invariants

- Rows are only ever inserted, inside the transaction of the mutation they
  describe, after that mutation succeeded.
- old_values/new_values are to_dict() snapshots (JSON-safe).
- This module never commits; the caller's transaction does.
"""


def record_audit_trail(
    *,
    entity_type: str,
    entity_id: int,
    action: str,
    old_values: dict | None = None,
    new_values: dict | None = None,
    notes: str | None = None,
) -> AuditTrail:
    if action not in AUDIT_ACTIONS:
        raise InvalidInputError(f"Unknown audit action: {action}", details={"action": action})

    entry = AuditTrail(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        old_values=old_values,
        new_values=new_values,
        notes=notes,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def list_audit_trail(
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    action: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[AuditTrail]:
    query = db.session.query(AuditTrail)
    if entity_type:
        query = query.filter(AuditTrail.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(AuditTrail.entity_id == entity_id)
    if action:
        query = query.filter(AuditTrail.action == action)

    limit = min(max(limit, 1), 500)
    offset = max(offset, 0)
    return (
        query.order_by(AuditTrail.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
