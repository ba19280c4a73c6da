# backend/stockroom/services/count_service.py
"""
Stock counts (opname).

LIFECYCLE:
1. DRAFT: lines entered with the ledger quantity snapshotted; editable
2. COMPLETED: every line posted as an 'adjustment' movement
3. CANCELLED: abandoned, no stock effect

Completion posts actual - current, where current is read at completion
time. Sales made between entry and completion are therefore counted
against the physical figure rather than silently overwritten by a stale
snapshot.
"""
from __future__ import annotations

import logging

from ..extensions import db
from ..errors import InvalidInputError, InvalidStateTransitionError, NotFoundError
from ..models import StockCount, StockCountItem
from ..models.counts import (
    COUNT_STATUS_CANCELLED,
    COUNT_STATUS_COMPLETED,
    COUNT_STATUS_DRAFT,
)
from ..numbers import to_quantity
from ..time_utils import normalize_datetime, utcnow
from .audit_service import record_audit_trail
from .catalog_service import get_location, get_product
from .concurrency import lock_for_update, run_in_transaction
from .stock_service import StockChange, apply_deltas, get_quantity

logger = logging.getLogger(__name__)


def _load_count(count_id: int, *, lock: bool = False) -> StockCount:
    query = db.session.query(StockCount).filter_by(id=count_id)
    if lock:
        query = lock_for_update(query)
    count = query.first()
    if count is None:
        raise NotFoundError(f"Stock count {count_id} not found", details={"stock_count_id": count_id})
    return count


def _require_draft(count: StockCount, action: str) -> None:
    if count.deleted_at is not None:
        raise InvalidStateTransitionError(
            f"Cannot {action} a deleted stock count",
            details={"stock_count_id": count.id},
        )
    if count.status != COUNT_STATUS_DRAFT:
        raise InvalidStateTransitionError(
            f"Cannot {action} stock count in {count.status} status",
            details={"stock_count_id": count.id, "status": count.status},
        )


def _build_items(location_id: int, items) -> list[StockCountItem]:
    if items is None:
        items = []
    if not isinstance(items, list):
        raise InvalidInputError("items must be a list", details={"field": "items"})

    seen = set()
    built = []
    for index, raw in enumerate(items, start=1):
        if not isinstance(raw, dict):
            raise InvalidInputError(f"item {index} must be an object", details={"item": index})
        product = get_product(raw.get("product_id"))
        if product.id in seen:
            raise InvalidInputError(
                f"Product {product.id} is counted twice",
                details={"item": index, "product_id": product.id},
            )
        seen.add(product.id)

        actual = to_quantity(raw.get("actual_quantity"), field="actual_quantity")
        if actual < 0:
            raise InvalidInputError(
                "actual_quantity cannot be negative",
                details={"item": index, "field": "actual_quantity"},
            )
        system = get_quantity(product.id, location_id)
        built.append(StockCountItem(
            product_id=product.id,
            system_quantity=system,
            actual_quantity=actual,
            difference=actual - system,
            notes=raw.get("notes"),
        ))
    return built


def create_stock_count(location_id: int, items=None, *, counted_at=None, notes: str | None = None) -> StockCount:
    def _op():
        get_location(location_id)
        try:
            counted = normalize_datetime(counted_at)
        except ValueError:
            raise InvalidInputError("counted_at must be an ISO-8601 datetime", details={"field": "counted_at"})

        count = StockCount(
            location_id=location_id,
            counted_at=counted,
            status=COUNT_STATUS_DRAFT,
            notes=notes,
            items=_build_items(location_id, items),
        )
        db.session.add(count)
        db.session.flush()

        record_audit_trail(
            entity_type="stock_count",
            entity_id=count.id,
            action="create",
            new_values=count.to_dict(),
        )
        return count

    return run_in_transaction(_op)


def update_stock_count(count_id: int, *, items=None, notes=None) -> StockCount:
    """Replace lines (re-snapshotting system quantities) and/or notes of a draft."""
    def _op():
        count = _load_count(count_id, lock=True)
        _require_draft(count, "update")
        before = count.to_dict()

        if items is not None:
            new_items = _build_items(count.location_id, items)
            count.items.clear()
            db.session.flush()
            count.items.extend(new_items)
        if notes is not None:
            count.notes = notes
        db.session.flush()

        record_audit_trail(
            entity_type="stock_count",
            entity_id=count.id,
            action="update",
            old_values=before,
            new_values=count.to_dict(),
        )
        return count

    return run_in_transaction(_op)


def complete_stock_count(count_id: int) -> StockCount:
    def _op():
        count = _load_count(count_id, lock=True)
        _require_draft(count, "complete")
        if not count.items:
            raise InvalidInputError(
                "Cannot complete a stock count with no items",
                details={"stock_count_id": count.id},
            )
        before = count.to_dict()

        changes = []
        for item in count.items:
            current = get_quantity(item.product_id, count.location_id, lock=True)
            item.posted_delta = to_quantity(item.actual_quantity) - current
            changes.append(StockChange(
                product_id=item.product_id,
                location_id=count.location_id,
                delta=item.posted_delta,
                movement_type="adjustment",
                reference_id=count.id,
                reference_type="stock_count",
                notes=f"Stock count #{count.id}",
                label=f"product {item.product_id}",
            ))
        apply_deltas(changes)

        count.status = COUNT_STATUS_COMPLETED
        count.completed_at = utcnow()
        db.session.flush()

        record_audit_trail(
            entity_type="stock_count",
            entity_id=count.id,
            action="approve",
            old_values=before,
            new_values=count.to_dict(),
        )
        logger.info(
            "Stock count %s completed at location %s (%s lines)",
            count.id, count.location_id, len(changes),
        )
        return count

    return run_in_transaction(_op)


def cancel_stock_count(count_id: int) -> StockCount:
    def _op():
        count = _load_count(count_id, lock=True)
        _require_draft(count, "cancel")
        before = count.to_dict()

        count.status = COUNT_STATUS_CANCELLED
        db.session.flush()

        record_audit_trail(
            entity_type="stock_count",
            entity_id=count.id,
            action="reject",
            old_values=before,
            new_values=count.to_dict(),
        )
        return count

    return run_in_transaction(_op)


def soft_delete_stock_count(count_id: int) -> StockCount:
    """Hide a count. Completed counts keep their posted movements."""
    def _op():
        count = _load_count(count_id, lock=True)
        if count.deleted_at is not None:
            raise InvalidStateTransitionError(
                f"Stock count {count.id} is already deleted",
                details={"stock_count_id": count.id},
            )
        before = count.to_dict()
        count.deleted_at = utcnow()
        db.session.flush()
        record_audit_trail(
            entity_type="stock_count",
            entity_id=count.id,
            action="delete",
            old_values=before,
            new_values=count.to_dict(),
        )
        return count

    return run_in_transaction(_op)


def restore_stock_count(count_id: int) -> StockCount:
    def _op():
        count = _load_count(count_id, lock=True)
        if count.deleted_at is None:
            raise InvalidStateTransitionError(
                f"Stock count {count.id} is not deleted",
                details={"stock_count_id": count.id},
            )
        before = count.to_dict()
        count.deleted_at = None
        db.session.flush()
        record_audit_trail(
            entity_type="stock_count",
            entity_id=count.id,
            action="restore",
            old_values=before,
            new_values=count.to_dict(),
        )
        return count

    return run_in_transaction(_op)


def get_stock_count(count_id: int, *, include_deleted: bool = False) -> StockCount:
    count = _load_count(count_id)
    if count.deleted_at is not None and not include_deleted:
        raise NotFoundError(f"Stock count {count_id} not found", details={"stock_count_id": count_id})
    return count


def list_stock_counts(
    *,
    include_deleted: bool = False,
    status: str | None = None,
    location_id: int | None = None,
) -> list[StockCount]:
    query = db.session.query(StockCount)
    if not include_deleted:
        query = query.filter(StockCount.deleted_at.is_(None))
    if status:
        query = query.filter(StockCount.status == status)
    if location_id is not None:
        query = query.filter(StockCount.location_id == location_id)
    return query.order_by(StockCount.id.desc()).all()
