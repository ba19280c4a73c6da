from __future__ import annotations

from ..extensions import db
from ..numbers import format_quantity
from ..time_utils import to_utc_z


DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED = "fixed"
DISCOUNT_TYPES = (DISCOUNT_PERCENTAGE, DISCOUNT_FIXED)


class Sale(db.Model):
    """
    Point-of-sale transaction at one location.

    Stock effect: every item's base_quantity is decremented at location_id
    while the sale is not deleted. Totals are in cents:
    total = subtotal - min(discount, subtotal).
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_sales_invoice_number"),
        db.Index("ix_sales_location_created", "location_id", "created_at"),
        db.CheckConstraint("total_amount_cents >= 0", name="ck_sales_total_non_negative"),
        db.CheckConstraint(
            "discount_type IS NULL OR discount_type IN ('percentage', 'fixed')",
            name="ck_sales_discount_type",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=True)

    # INV-YYYYMM-NNNN
    invoice_number = db.Column(db.String(32), nullable=False)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_type = db.Column(db.String(16), nullable=True)
    # Percent for 'percentage', cents for 'fixed'
    discount_value = db.Column(db.Numeric(12, 2), nullable=True)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    sold_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    location = db.relationship("Location")
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "location_id": self.location_id,
            "location_name": self.location.name if self.location else None,
            "customer_name": self.customer_name,
            "invoice_number": self.invoice_number,
            "subtotal_cents": self.subtotal_cents,
            "discount_type": self.discount_type,
            "discount_value": format_quantity(self.discount_value),
            "discount_amount_cents": self.discount_amount_cents,
            "total_amount_cents": self.total_amount_cents,
            "notes": self.notes,
            "sold_at": to_utc_z(self.sold_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "deleted_at": to_utc_z(self.deleted_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """One line of a sale. base_quantity is what left the shelf, in the product's base UOM."""
    __tablename__ = "sales_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sales_items_quantity_positive"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_sales_items_price_non_negative"),
        db.CheckConstraint("subtotal_cents >= 0", name="ck_sales_items_subtotal_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(18, 6), nullable=False)
    uom_id = db.Column(db.Integer, db.ForeignKey("uoms.id"), nullable=True)
    base_quantity = db.Column(db.Numeric(18, 6), nullable=False)

    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": format_quantity(self.quantity),
            "uom_id": self.uom_id,
            "base_quantity": format_quantity(self.base_quantity),
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
            "created_at": to_utc_z(self.created_at),
        }
