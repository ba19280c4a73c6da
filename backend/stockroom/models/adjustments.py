from __future__ import annotations

from sqlalchemy.orm import declared_attr

from ..extensions import db
from ..numbers import format_quantity
from ..time_utils import to_utc_z


STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
ADJUSTMENT_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)


class ApprovalGatedMixin:
    """
    Columns shared by procurements and disposals.

    LIFECYCLE: pending -> approved | rejected. Only an approved, non-deleted
    row has a stock effect.

    The applied_* triple records the effect that is currently on the books
    (product, location, quantity in base UOM). It is non-null exactly while
    the effect is applied, so reversal means "undo what is recorded" rather
    than re-deriving the effect from status history or re-running a UOM
    conversion whose rate may have changed since.
    """

    id = db.Column(db.Integer, primary_key=True)

    @declared_attr
    def product_id(cls):
        return db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    @declared_attr
    def location_id(cls):
        return db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)

    @declared_attr
    def uom_id(cls):
        return db.Column(db.Integer, db.ForeignKey("uoms.id"), nullable=True)

    # As entered, in uom_id
    quantity = db.Column(db.Numeric(18, 6), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING, index=True)
    pic = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    applied_product_id = db.Column(db.Integer, nullable=True)
    applied_location_id = db.Column(db.Integer, nullable=True)
    applied_quantity = db.Column(db.Numeric(18, 6), nullable=True)

    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    @declared_attr
    def product(cls):
        return db.relationship("Product")

    @declared_attr
    def location(cls):
        return db.relationship("Location")

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def _base_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "location_id": self.location_id,
            "quantity": format_quantity(self.quantity),
            "uom_id": self.uom_id,
            "status": self.status,
            "pic": self.pic,
            "notes": self.notes,
            "applied_quantity": format_quantity(self.applied_quantity),
            "approved_at": to_utc_z(self.approved_at),
            "rejected_at": to_utc_z(self.rejected_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "deleted_at": to_utc_z(self.deleted_at),
            "product_name": self.product.name if self.product else None,
            "location_name": self.location.name if self.location else None,
        }


class Procurement(ApprovalGatedMixin, db.Model):
    """Incoming stock from a supplier. Approved effect: +quantity at location."""
    __tablename__ = "procurements"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_procurements_quantity_positive"),
        db.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_procurements_status",
        ),
        {"sqlite_autoincrement": True},
    )

    unit_price_cents = db.Column(db.Integer, nullable=True)
    supplier = db.Column(db.String(255), nullable=True)

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update({
            "unit_price_cents": self.unit_price_cents,
            "supplier": self.supplier,
        })
        return data


class Disposal(ApprovalGatedMixin, db.Model):
    """Damaged/expired stock written off. Approved effect: -quantity at location."""
    __tablename__ = "disposals"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_disposals_quantity_positive"),
        db.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_disposals_status",
        ),
        {"sqlite_autoincrement": True},
    )

    reason = db.Column(db.String(255), nullable=True)

    def to_dict(self) -> dict:
        data = self._base_dict()
        data["reason"] = self.reason
        return data
