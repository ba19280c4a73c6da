from __future__ import annotations

from sqlalchemy import event, inspect

from ..extensions import db
from ..errors import InvalidStateTransitionError
from ..numbers import format_quantity
from ..time_utils import to_utc_z


MOVEMENT_TYPES = ("procurement", "sale", "disposal", "adjustment", "transfer")


class StockLevel(db.Model):
    """
    Current quantity of one product at one location, in the product's base UOM.

    Written only by stock_service.set_quantity. The row is created on first
    write and never deleted; zero is a valid terminal state. version_id turns
    a lost update between two writers into a StaleDataError.
    """
    __tablename__ = "product_location_stocks"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_product_location_stocks_non_negative"),
        db.Index("ix_pls_location", "location_id"),
    )

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), primary_key=True)
    stock = db.Column(db.Numeric(18, 6), nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product")
    location = db.relationship("Location")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<StockLevel product_id={self.product_id} location_id={self.location_id} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "location_id": self.location_id,
            "stock": format_quantity(self.stock),
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
            "product_name": self.product.name if self.product else None,
            "location_name": self.location.name if self.location else None,
        }


class StockMovement(db.Model):
    """
    Append-only ledger row: one signed stock change with provenance.

    For every (product, location) the sum of quantity over all rows equals
    StockLevel.stock. reference_type/reference_id point at the causing
    document; for transfers they point at the paired movement.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_location", "product_id", "location_id"),
        db.Index("ix_stock_movements_reference", "reference_type", "reference_id"),
        db.CheckConstraint(
            "movement_type IN ('procurement', 'sale', 'disposal', 'adjustment', 'transfer')",
            name="ck_stock_movements_type",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(16), nullable=False, index=True)

    # Positive for increases, negative for decreases
    quantity = db.Column(db.Numeric(18, 6), nullable=False)

    reference_id = db.Column(db.Integer, nullable=True)
    reference_type = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.String(255), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    product = db.relationship("Product")
    location = db.relationship("Location")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "location_id": self.location_id,
            "movement_type": self.movement_type,
            "quantity": format_quantity(self.quantity),
            "reference_id": self.reference_id,
            "reference_type": self.reference_type,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "product_name": self.product.name if self.product else None,
            "location_name": self.location.name if self.location else None,
        }


@event.listens_for(StockMovement, "before_update")
def _movement_is_append_only(mapper, connection, target):
    # The one allowed write: filling an empty reference_id (transfer pairing).
    state = inspect(target)
    for attr in mapper.column_attrs:
        history = state.attrs[attr.key].history
        if not history.has_changes():
            continue
        if attr.key == "reference_id" and all(v is None for v in history.deleted):
            continue
        raise InvalidStateTransitionError(
            "Stock movements are append-only",
            details={"movement_id": target.id, "field": attr.key},
        )


@event.listens_for(StockMovement, "before_delete")
def _movement_is_never_deleted(mapper, connection, target):
    raise InvalidStateTransitionError(
        "Stock movements are append-only",
        details={"movement_id": target.id},
    )
