from __future__ import annotations

from ..extensions import db
from ..numbers import format_quantity
from ..time_utils import to_utc_z


class UOM(db.Model):
    """Unit of measure (pcs, box, kg...). Managed by the catalog screens."""
    __tablename__ = "uoms"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    abbreviation = db.Column(db.String(16), nullable=False, unique=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<UOM id={self.id} abbreviation={self.abbreviation!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "abbreviation": self.abbreviation,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "deleted_at": to_utc_z(self.deleted_at),
        }


class UOMConversion(db.Model):
    """
    Directed conversion: quantity_in_to_uom = quantity_in_from_uom * rate.

    One row per ordered pair. The resolver also walks a row backwards
    (dividing by the rate), so registering box -> pcs = 12 is enough to
    convert in both directions.
    """
    __tablename__ = "uom_conversions"
    __table_args__ = (
        db.UniqueConstraint("from_uom_id", "to_uom_id", name="uq_uom_conversions_pair"),
        db.CheckConstraint("rate > 0", name="ck_uom_conversions_rate_positive"),
        db.CheckConstraint("from_uom_id <> to_uom_id", name="ck_uom_conversions_distinct"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    from_uom_id = db.Column(db.Integer, db.ForeignKey("uoms.id", ondelete="CASCADE"), nullable=False, index=True)
    to_uom_id = db.Column(db.Integer, db.ForeignKey("uoms.id", ondelete="CASCADE"), nullable=False, index=True)
    rate = db.Column(db.Numeric(18, 6), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    from_uom = db.relationship("UOM", foreign_keys=[from_uom_id])
    to_uom = db.relationship("UOM", foreign_keys=[to_uom_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "from_uom_id": self.from_uom_id,
            "to_uom_id": self.to_uom_id,
            "rate": format_quantity(self.rate),
            "from_uom_abbreviation": self.from_uom.abbreviation if self.from_uom else None,
            "to_uom_abbreviation": self.to_uom.abbreviation if self.to_uom else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Product master data.

    uom_id is the product's base unit: every stock quantity for this product
    is stored and compared in it. A product without a base unit takes
    quantities as entered.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    barcode = db.Column(db.String(64), nullable=True, unique=True)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=True)

    uom_id = db.Column(db.Integer, db.ForeignKey("uoms.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    uom = db.relationship("UOM")

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "barcode": self.barcode,
            "price_cents": self.price_cents,
            "uom_id": self.uom_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "deleted_at": to_utc_z(self.deleted_at),
        }


class Location(db.Model):
    """A place that holds stock: a warehouse or a store front."""
    __tablename__ = "locations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(32), nullable=False, default="warehouse")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Location id={self.id} name={self.name!r} type={self.type!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "deleted_at": to_utc_z(self.deleted_at),
        }
