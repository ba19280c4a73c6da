# Overview: Lookups of catalog rows (products, locations, units) owned by the catalog screens.

from __future__ import annotations

from ..extensions import db
from ..errors import NotFoundError
from ..models import Product, Location, UOM


def _get_active(model, entity_id: int, label: str, *, include_deleted: bool = False):
    row = db.session.get(model, entity_id) if entity_id is not None else None
    if row is None or (row.deleted_at is not None and not include_deleted):
        raise NotFoundError(f"{label} {entity_id} not found", details={label.lower(): entity_id})
    return row


def get_product(product_id: int, *, include_deleted: bool = False) -> Product:
    return _get_active(Product, product_id, "Product", include_deleted=include_deleted)


def get_location(location_id: int, *, include_deleted: bool = False) -> Location:
    return _get_active(Location, location_id, "Location", include_deleted=include_deleted)


def get_uom(uom_id: int, *, include_deleted: bool = False) -> UOM:
    return _get_active(UOM, uom_id, "UOM", include_deleted=include_deleted)


def list_active_products() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.deleted_at.is_(None))
        .order_by(Product.id.asc())
        .all()
    )


def list_active_locations() -> list[Location]:
    return (
        db.session.query(Location)
        .filter(Location.deleted_at.is_(None))
        .order_by(Location.id.asc())
        .all()
    )
