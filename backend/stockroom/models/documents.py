from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


AUDIT_ACTIONS = ("create", "update", "delete", "restore", "approve", "reject")


class DocumentSequence(db.Model):
    """
    Atomic per-period document sequences.

    WHY: two sales in the same month must never receive the same invoice
    number, and a rolled-back sale must not leave a gap.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", "period", name="uq_doc_sequences_type_period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    period = db.Column(db.String(16), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "period": self.period,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }


class AuditTrail(db.Model):
    """
    Append-only audit sink: who-changed-what snapshots.

    The inventory core writes here after every successful mutation, in the
    same DB transaction, and never reads it back.
    """
    __tablename__ = "audit_trail"
    __table_args__ = (
        db.Index("ix_audit_trail_entity", "entity_type", "entity_id"),
        db.CheckConstraint(
            "action IN ('create', 'update', 'delete', 'restore', 'approve', 'reject')",
            name="ck_audit_trail_action",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    entity_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)
    action = db.Column(db.String(16), nullable=False, index=True)
    old_values = db.Column(db.JSON, nullable=True)
    new_values = db.Column(db.JSON, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "old_values": self.old_values,
            "new_values": self.new_values,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
