# Overview: Procurement (incoming supplier stock) operations on top of the adjustment engine.

from __future__ import annotations

from ..models import Procurement
from . import adjustment_service as engine
from .adjustment_service import AdjustmentKind, optional_cents, optional_text


PROCUREMENT = AdjustmentKind(
    model=Procurement,
    entity_type="procurement",
    movement_type="procurement",
    sign=1,
    label="Procurement",
    extra_fields={
        "unit_price_cents": optional_cents,
        "supplier": optional_text,
    },
)


def create_procurement(
    *,
    product_id: int,
    location_id: int,
    quantity,
    uom_id: int | None = None,
    unit_price_cents: int | None = None,
    supplier: str | None = None,
    pic: str | None = None,
    notes: str | None = None,
) -> Procurement:
    """Record a pending procurement. Stock is untouched until approval."""
    return engine.create_adjustment(
        PROCUREMENT,
        product_id=product_id,
        location_id=location_id,
        quantity=quantity,
        uom_id=uom_id,
        pic=pic,
        notes=notes,
        unit_price_cents=unit_price_cents,
        supplier=supplier,
    )


def approve_procurement(procurement_id: int) -> Procurement:
    return engine.approve_adjustment(PROCUREMENT, procurement_id)


def reject_procurement(procurement_id: int) -> Procurement:
    return engine.reject_adjustment(PROCUREMENT, procurement_id)


def update_procurement(procurement_id: int, **changes) -> Procurement:
    return engine.update_adjustment(PROCUREMENT, procurement_id, **changes)


def delete_procurement(procurement_id: int) -> Procurement:
    return engine.soft_delete_adjustment(PROCUREMENT, procurement_id)


def restore_procurement(procurement_id: int) -> Procurement:
    return engine.restore_adjustment(PROCUREMENT, procurement_id)


def get_procurement(procurement_id: int, *, include_deleted: bool = False) -> Procurement:
    return engine.get_adjustment(PROCUREMENT, procurement_id, include_deleted=include_deleted)


def list_procurements(**filters) -> list[Procurement]:
    return engine.list_adjustments(PROCUREMENT, **filters)
