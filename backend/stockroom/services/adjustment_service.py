# backend/stockroom/services/adjustment_service.py
"""
Approval-gated stock adjustments (procurements and disposals).

LIFECYCLE:
1. PENDING: created, no stock effect
2. APPROVED: effect on the books (procurement +qty, disposal -qty)
3. REJECTED: no stock effect

A rejected row can be approved again and an approved row rejected; the
same state twice in a row is an InvalidStateTransitionError. Soft-deleted
rows carry no effect and refuse every transition except restore.

Every state change goes through _sync_effect: the row's applied_* triple
says what is currently on the books, the desired effect is derived from
the row's fields, and the difference is posted as one validated batch
(reversal movement first, then the new effect).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable

from ..extensions import db
from ..errors import InvalidInputError, InvalidStateTransitionError, NotFoundError
from ..models.adjustments import (
    ADJUSTMENT_STATUSES,
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
)
from ..numbers import QTY_QUANT, to_positive_quantity
from ..time_utils import utcnow
from .audit_service import record_audit_trail
from .catalog_service import get_location, get_product, get_uom
from .concurrency import lock_for_update, run_in_transaction
from .stock_service import StockChange, apply_deltas, check_availability
from .uom_service import to_positive_base_quantity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdjustmentKind:
    model: type
    entity_type: str
    movement_type: str
    # +1 adds stock when approved, -1 removes it
    sign: int
    label: str
    # Kind-specific columns: name -> validator returning the stored value
    extra_fields: dict[str, Callable] = field(default_factory=dict)
    check_stock_on_create: bool = False


@dataclass(frozen=True)
class Effect:
    product_id: int
    location_id: int
    quantity: Decimal


def optional_text(value, *, name: str):
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidInputError(f"{name} must be a string", details={"field": name})
    return value.strip() or None


def optional_cents(value, *, name: str):
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidInputError(f"{name} must be a non-negative integer", details={"field": name})
    return value


def _desired_effect(kind: AdjustmentKind, *, status, deleted, product_id, location_id, quantity, uom_id):
    if status != STATUS_APPROVED or deleted:
        return None
    product = get_product(product_id, include_deleted=True)
    if product.deleted_at is not None:
        raise InvalidStateTransitionError(
            f"Product {product_id} is deleted; its {kind.entity_type} cannot carry stock",
            details={"product_id": product_id},
        )
    base = to_positive_base_quantity(product, quantity, uom_id)
    return Effect(product_id, location_id, base.quantize(QTY_QUANT))


def _applied_effect(row) -> Effect | None:
    if row.applied_quantity is None:
        return None
    return Effect(
        row.applied_product_id,
        row.applied_location_id,
        Decimal(row.applied_quantity).quantize(QTY_QUANT),
    )


def _sync_effect(kind: AdjustmentKind, row, desired: Effect | None) -> None:
    applied = _applied_effect(row)
    if applied == desired:
        return

    tag = f"{kind.entity_type} #{row.id}"
    changes = []
    if applied is not None:
        changes.append(StockChange(
            product_id=applied.product_id,
            location_id=applied.location_id,
            delta=-kind.sign * applied.quantity,
            movement_type=kind.movement_type,
            reference_id=row.id,
            reference_type=kind.entity_type,
            notes=f"Reversal of {kind.label} #{row.id}",
            label=tag,
        ))
    if desired is not None:
        changes.append(StockChange(
            product_id=desired.product_id,
            location_id=desired.location_id,
            delta=kind.sign * desired.quantity,
            movement_type=kind.movement_type,
            reference_id=row.id,
            reference_type=kind.entity_type,
            notes=f"{kind.label} #{row.id}",
            label=tag,
        ))

    apply_deltas(changes)

    if desired is None:
        row.applied_product_id = None
        row.applied_location_id = None
        row.applied_quantity = None
    else:
        row.applied_product_id = desired.product_id
        row.applied_location_id = desired.location_id
        row.applied_quantity = desired.quantity


def _load(kind: AdjustmentKind, entity_id: int, *, lock: bool = False):
    query = db.session.query(kind.model).filter_by(id=entity_id)
    if lock:
        query = lock_for_update(query)
    row = query.first()
    if row is None:
        raise NotFoundError(
            f"{kind.label} {entity_id} not found",
            details={f"{kind.entity_type}_id": entity_id},
        )
    return row


def _require_not_deleted(kind: AdjustmentKind, row, action: str) -> None:
    if row.deleted_at is not None:
        raise InvalidStateTransitionError(
            f"Cannot {action} a deleted {kind.entity_type}",
            details={f"{kind.entity_type}_id": row.id},
        )


def _check_covers(kind: AdjustmentKind, product_id: int, location_id: int, base_quantity: Decimal, tag: str) -> None:
    check_availability([StockChange(
        product_id=product_id,
        location_id=location_id,
        delta=kind.sign * base_quantity,
        movement_type=kind.movement_type,
        label=tag,
    )])


def _clean_extras(kind: AdjustmentKind, values: dict) -> dict:
    cleaned = {}
    for name, value in values.items():
        validator = kind.extra_fields.get(name)
        if validator is None:
            raise InvalidInputError(f"Unknown field: {name}", details={"field": name})
        cleaned[name] = validator(value, name=name)
    return cleaned


# =============================================================================
# Operations
# =============================================================================

def create_adjustment(
    kind: AdjustmentKind,
    *,
    product_id: int,
    location_id: int,
    quantity,
    uom_id: int | None = None,
    pic: str | None = None,
    notes: str | None = None,
    **extra,
):
    def _op():
        product = get_product(product_id)
        get_location(location_id)
        if uom_id is not None:
            get_uom(uom_id)
        qty = to_positive_quantity(quantity)
        extras = _clean_extras(kind, extra)

        if kind.check_stock_on_create:
            base = to_positive_base_quantity(product, qty, uom_id)
            _check_covers(kind, product_id, location_id, base, f"new {kind.entity_type}")

        row = kind.model(
            product_id=product_id,
            location_id=location_id,
            quantity=qty,
            uom_id=uom_id,
            status=STATUS_PENDING,
            pic=optional_text(pic, name="pic"),
            notes=optional_text(notes, name="notes"),
            **extras,
        )
        db.session.add(row)
        db.session.flush()

        record_audit_trail(
            entity_type=kind.entity_type,
            entity_id=row.id,
            action="create",
            new_values=row.to_dict(),
        )
        return row

    return run_in_transaction(_op)


def approve_adjustment(kind: AdjustmentKind, entity_id: int):
    def _op():
        row = _load(kind, entity_id, lock=True)
        _require_not_deleted(kind, row, "approve")
        if row.status == STATUS_APPROVED:
            raise InvalidStateTransitionError(
                f"{kind.label} {row.id} is already approved",
                details={f"{kind.entity_type}_id": row.id, "status": row.status},
            )
        before = row.to_dict()

        # Conversion and stock checks run before status changes
        desired = _desired_effect(
            kind,
            status=STATUS_APPROVED,
            deleted=False,
            product_id=row.product_id,
            location_id=row.location_id,
            quantity=row.quantity,
            uom_id=row.uom_id,
        )
        _sync_effect(kind, row, desired)

        row.status = STATUS_APPROVED
        row.approved_at = utcnow()
        row.rejected_at = None
        db.session.flush()

        record_audit_trail(
            entity_type=kind.entity_type,
            entity_id=row.id,
            action="approve",
            old_values=before,
            new_values=row.to_dict(),
        )
        logger.info("%s %s approved (%s base units)", kind.label, row.id, desired.quantity)
        return row

    return run_in_transaction(_op)


def reject_adjustment(kind: AdjustmentKind, entity_id: int):
    def _op():
        row = _load(kind, entity_id, lock=True)
        _require_not_deleted(kind, row, "reject")
        if row.status == STATUS_REJECTED:
            raise InvalidStateTransitionError(
                f"{kind.label} {row.id} is already rejected",
                details={f"{kind.entity_type}_id": row.id, "status": row.status},
            )
        before = row.to_dict()
        was_approved = row.status == STATUS_APPROVED

        _sync_effect(kind, row, None)

        row.status = STATUS_REJECTED
        row.rejected_at = utcnow()
        db.session.flush()

        record_audit_trail(
            entity_type=kind.entity_type,
            entity_id=row.id,
            action="reject",
            old_values=before,
            new_values=row.to_dict(),
        )
        logger.info("%s %s rejected (reversed=%s)", kind.label, row.id, was_approved)
        return row

    return run_in_transaction(_op)


def update_adjustment(kind: AdjustmentKind, entity_id: int, **changes):
    """
    Patch fields; if the patched row implies a different stock effect than
    the one on the books, reverse the old and apply the new in one batch.
    """
    core_fields = {"product_id", "location_id", "quantity", "uom_id", "status", "pic", "notes"}

    def _op():
        row = _load(kind, entity_id, lock=True)
        _require_not_deleted(kind, row, "update")
        before = row.to_dict()

        extras = _clean_extras(kind, {k: v for k, v in changes.items() if k not in core_fields})

        product_id = changes.get("product_id", row.product_id)
        location_id = changes.get("location_id", row.location_id)
        uom_id = changes.get("uom_id", row.uom_id)
        status = changes.get("status", row.status)

        if "product_id" in changes:
            get_product(product_id)
        get_location(location_id)
        if uom_id is not None:
            get_uom(uom_id)
        if status not in ADJUSTMENT_STATUSES:
            raise InvalidInputError(
                f"Invalid status: {status}",
                details={"field": "status", "allowed": list(ADJUSTMENT_STATUSES)},
            )
        quantity = to_positive_quantity(changes["quantity"]) if "quantity" in changes else row.quantity

        # Notes, pic and extra fields never touch stock; the booked effect
        # stays as recorded even if the conversion rate moved since.
        effect_changed = (
            product_id != row.product_id
            or location_id != row.location_id
            or uom_id != row.uom_id
            or status != row.status
            or Decimal(quantity) != Decimal(row.quantity)
        )
        if effect_changed:
            desired = _desired_effect(
                kind,
                status=status,
                deleted=False,
                product_id=product_id,
                location_id=location_id,
                quantity=quantity,
                uom_id=uom_id,
            )
            _sync_effect(kind, row, desired)

        if status != row.status:
            if status == STATUS_APPROVED:
                row.approved_at = utcnow()
            elif status == STATUS_REJECTED:
                row.rejected_at = utcnow()
        row.product_id = product_id
        row.location_id = location_id
        row.uom_id = uom_id
        row.quantity = quantity
        row.status = status
        if "pic" in changes:
            row.pic = optional_text(changes["pic"], name="pic")
        if "notes" in changes:
            row.notes = optional_text(changes["notes"], name="notes")
        for name, value in extras.items():
            setattr(row, name, value)

        db.session.flush()
        db.session.refresh(row)

        record_audit_trail(
            entity_type=kind.entity_type,
            entity_id=row.id,
            action="update",
            old_values=before,
            new_values=row.to_dict(),
        )
        return row

    return run_in_transaction(_op)


def soft_delete_adjustment(kind: AdjustmentKind, entity_id: int):
    def _op():
        row = _load(kind, entity_id, lock=True)
        if row.deleted_at is not None:
            raise InvalidStateTransitionError(
                f"{kind.label} {row.id} is already deleted",
                details={f"{kind.entity_type}_id": row.id},
            )
        before = row.to_dict()

        _sync_effect(kind, row, None)
        row.deleted_at = utcnow()
        db.session.flush()

        record_audit_trail(
            entity_type=kind.entity_type,
            entity_id=row.id,
            action="delete",
            old_values=before,
            new_values=row.to_dict(),
        )
        return row

    return run_in_transaction(_op)


def restore_adjustment(kind: AdjustmentKind, entity_id: int):
    def _op():
        row = _load(kind, entity_id, lock=True)
        if row.deleted_at is None:
            raise InvalidStateTransitionError(
                f"{kind.label} {row.id} is not deleted",
                details={f"{kind.entity_type}_id": row.id},
            )
        before = row.to_dict()

        desired = _desired_effect(
            kind,
            status=row.status,
            deleted=False,
            product_id=row.product_id,
            location_id=row.location_id,
            quantity=row.quantity,
            uom_id=row.uom_id,
        )
        _sync_effect(kind, row, desired)
        row.deleted_at = None
        db.session.flush()

        record_audit_trail(
            entity_type=kind.entity_type,
            entity_id=row.id,
            action="restore",
            old_values=before,
            new_values=row.to_dict(),
        )
        return row

    return run_in_transaction(_op)


def get_adjustment(kind: AdjustmentKind, entity_id: int, *, include_deleted: bool = False):
    row = _load(kind, entity_id)
    if row.deleted_at is not None and not include_deleted:
        raise NotFoundError(
            f"{kind.label} {entity_id} not found",
            details={f"{kind.entity_type}_id": entity_id},
        )
    return row


def list_adjustments(
    kind: AdjustmentKind,
    *,
    include_deleted: bool = False,
    status: str | None = None,
    product_id: int | None = None,
    location_id: int | None = None,
):
    model = kind.model
    query = db.session.query(model)
    if not include_deleted:
        query = query.filter(model.deleted_at.is_(None))
    if status:
        query = query.filter(model.status == status)
    if product_id is not None:
        query = query.filter(model.product_id == product_id)
    if location_id is not None:
        query = query.filter(model.location_id == location_id)
    return query.order_by(model.id.desc()).all()
