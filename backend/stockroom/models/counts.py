from __future__ import annotations

from ..extensions import db
from ..numbers import format_quantity
from ..time_utils import to_utc_z


COUNT_STATUS_DRAFT = "draft"
COUNT_STATUS_COMPLETED = "completed"
COUNT_STATUS_CANCELLED = "cancelled"


class StockCount(db.Model):
    """
    Physical stock count (opname) at one location.

    LIFECYCLE:
    1. draft: items entered, no stock effect
    2. completed: each counted product brought to its actual quantity
       through 'adjustment' movements
    3. cancelled: abandoned, no stock effect
    """
    __tablename__ = "stock_counts"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('draft', 'completed', 'cancelled')",
            name="ck_stock_counts_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    counted_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    status = db.Column(db.String(16), nullable=False, default=COUNT_STATUS_DRAFT, index=True)
    notes = db.Column(db.Text, nullable=True)

    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    location = db.relationship("Location")
    items = db.relationship(
        "StockCountItem",
        back_populates="stock_count",
        cascade="all, delete-orphan",
        order_by="StockCountItem.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "location_name": self.location.name if self.location else None,
            "counted_at": to_utc_z(self.counted_at),
            "status": self.status,
            "notes": self.notes,
            "completed_at": to_utc_z(self.completed_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "deleted_at": to_utc_z(self.deleted_at),
            "items": [item.to_dict() for item in self.items],
        }


class StockCountItem(db.Model):
    __tablename__ = "stock_count_items"
    __table_args__ = (
        db.UniqueConstraint("stock_count_id", "product_id", name="uq_stock_count_items_count_product"),
        db.CheckConstraint("actual_quantity >= 0", name="ck_stock_count_items_actual_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    stock_count_id = db.Column(db.Integer, db.ForeignKey("stock_counts.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    # Ledger quantity when the line was entered
    system_quantity = db.Column(db.Numeric(18, 6), nullable=False, default=0)
    actual_quantity = db.Column(db.Numeric(18, 6), nullable=False)
    difference = db.Column(db.Numeric(18, 6), nullable=False, default=0)
    # Delta actually posted on completion (stock may have moved since entry)
    posted_delta = db.Column(db.Numeric(18, 6), nullable=True)
    notes = db.Column(db.String(255), nullable=True)

    stock_count = db.relationship("StockCount", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stock_count_id": self.stock_count_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "system_quantity": format_quantity(self.system_quantity),
            "actual_quantity": format_quantity(self.actual_quantity),
            "difference": format_quantity(self.difference),
            "posted_delta": format_quantity(self.posted_delta),
            "notes": self.notes,
        }
