# Overview: Disposal (damaged/expired stock write-off) operations on top of the adjustment engine.

from __future__ import annotations

from ..models import Disposal
from . import adjustment_service as engine
from .adjustment_service import AdjustmentKind, optional_text


# Creation already requires the location to hold the quantity;
# approval checks again since stock may have moved in between.
DISPOSAL = AdjustmentKind(
    model=Disposal,
    entity_type="disposal",
    movement_type="disposal",
    sign=-1,
    label="Disposal",
    extra_fields={"reason": optional_text},
    check_stock_on_create=True,
)


def create_disposal(
    *,
    product_id: int,
    location_id: int,
    quantity,
    uom_id: int | None = None,
    reason: str | None = None,
    pic: str | None = None,
    notes: str | None = None,
) -> Disposal:
    return engine.create_adjustment(
        DISPOSAL,
        product_id=product_id,
        location_id=location_id,
        quantity=quantity,
        uom_id=uom_id,
        pic=pic,
        notes=notes,
        reason=reason,
    )


def approve_disposal(disposal_id: int) -> Disposal:
    return engine.approve_adjustment(DISPOSAL, disposal_id)


def reject_disposal(disposal_id: int) -> Disposal:
    return engine.reject_adjustment(DISPOSAL, disposal_id)


def update_disposal(disposal_id: int, **changes) -> Disposal:
    return engine.update_adjustment(DISPOSAL, disposal_id, **changes)


def delete_disposal(disposal_id: int) -> Disposal:
    return engine.soft_delete_adjustment(DISPOSAL, disposal_id)


def restore_disposal(disposal_id: int) -> Disposal:
    return engine.restore_adjustment(DISPOSAL, disposal_id)


def get_disposal(disposal_id: int, *, include_deleted: bool = False) -> Disposal:
    return engine.get_adjustment(DISPOSAL, disposal_id, include_deleted=include_deleted)


def list_disposals(**filters) -> list[Disposal]:
    return engine.list_adjustments(DISPOSAL, **filters)
