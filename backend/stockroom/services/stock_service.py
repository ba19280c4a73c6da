# Overview: Stock ledger primitive; the only writer of per-location stock levels and movements.

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..errors import InsufficientStockError, InvalidInputError
from ..models import StockLevel, StockMovement, MOVEMENT_TYPES
from ..numbers import QTY_QUANT, ZERO, to_quantity, format_quantity
from .concurrency import lock_for_update
"""
Stock ledger invariants (authoritative)

- StockLevel.stock is never negative.
- For every (product, location): StockLevel.stock == SUM(StockMovement.quantity).
- set_quantity is the only code that writes a StockLevel row; apply_deltas is
  the only caller that changes a level without also appending a movement in
  the same flush.
- Every batch is validated as a whole (net delta per key) before anything is
  written, so a rejected batch leaves no partial state.
- Nothing here commits; callers wrap work in run_in_transaction.
"""


@dataclass(frozen=True)
class StockChange:
    """One signed change to apply, with the provenance its movement will carry."""
    product_id: int
    location_id: int
    delta: Decimal
    movement_type: str
    reference_id: int | None = None
    reference_type: str | None = None
    notes: str | None = None
    # Human-readable name used in shortfall messages ("item 2", "disposal #7")
    label: str | None = None

    @property
    def key(self) -> tuple[int, int]:
        return (self.product_id, self.location_id)


def _level_query(product_id: int, location_id: int):
    return db.session.query(StockLevel).filter_by(product_id=product_id, location_id=location_id)


def get_quantity(product_id: int, location_id: int, *, lock: bool = False) -> Decimal:
    """Current stock in base units; 0 when the pair has never been written."""
    query = _level_query(product_id, location_id)
    if lock:
        query = lock_for_update(query)
    level = query.first()
    if level is None:
        return ZERO
    return Decimal(level.stock).quantize(QTY_QUANT)


def set_quantity(product_id: int, location_id: int, new_quantity) -> StockLevel:
    qty = to_quantity(new_quantity)
    if qty < 0:
        raise InsufficientStockError(
            "Stock cannot go negative",
            details={
                "product_id": product_id,
                "location_id": location_id,
                "quantity": format_quantity(qty),
            },
        )

    level = lock_for_update(_level_query(product_id, location_id)).first()
    if level is None:
        level = StockLevel(product_id=product_id, location_id=location_id, stock=qty)
        db.session.add(level)
    else:
        level.stock = qty
    db.session.flush()
    return level


def _net_by_key(changes: list[StockChange]) -> "OrderedDict[tuple[int, int], Decimal]":
    net: "OrderedDict[tuple[int, int], Decimal]" = OrderedDict()
    for change in sorted(changes, key=lambda c: c.key):
        net[change.key] = net.get(change.key, ZERO) + to_quantity(change.delta, field="delta")
    return net


def check_availability(changes: list[StockChange]) -> dict[tuple[int, int], Decimal]:
    """
    Validate a batch without writing.

    Locks each touched key in (product_id, location_id) order and returns
    {key: current quantity}. Raises InsufficientStockError listing every key
    whose net change would take it below zero.
    """
    net = _net_by_key(changes)
    current: dict[tuple[int, int], Decimal] = {}
    shortfalls = []

    for key, delta in net.items():
        on_hand = get_quantity(*key, lock=True)
        current[key] = on_hand
        if on_hand + delta < 0:
            labels = [c.label for c in changes if c.key == key and c.delta < 0 and c.label]
            shortfalls.append({
                "product_id": key[0],
                "location_id": key[1],
                "available": format_quantity(on_hand),
                "requested": format_quantity(-delta),
                "items": labels,
            })

    if shortfalls:
        first = shortfalls[0]
        subject = f"{', '.join(first['items'])}: " if first["items"] else ""
        raise InsufficientStockError(
            f"{subject}insufficient stock for product {first['product_id']} "
            f"at location {first['location_id']} "
            f"(available {first['available']}, requested {first['requested']})",
            details={"shortfalls": shortfalls},
        )
    return current


def append_movement(
    *,
    product_id: int,
    location_id: int,
    quantity,
    movement_type: str,
    reference_id: int | None = None,
    reference_type: str | None = None,
    notes: str | None = None,
) -> StockMovement:
    """Insert one immutable ledger row. Does not touch StockLevel."""
    if movement_type not in MOVEMENT_TYPES:
        raise InvalidInputError(
            f"Unknown movement type: {movement_type}",
            details={"movement_type": movement_type},
        )
    movement = StockMovement(
        product_id=product_id,
        location_id=location_id,
        movement_type=movement_type,
        quantity=to_quantity(quantity),
        reference_id=reference_id,
        reference_type=reference_type,
        notes=notes[:255] if notes else notes,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def apply_deltas(changes: list[StockChange]) -> list[StockMovement]:
    """
    Validate then apply a batch: one level write per key, one movement per
    non-zero change (in the order given).
    """
    current = check_availability(changes)
    net = _net_by_key(changes)

    for key, delta in net.items():
        if delta != 0:
            set_quantity(key[0], key[1], current[key] + delta)

    movements = []
    for change in changes:
        delta = to_quantity(change.delta, field="delta")
        if delta == 0:
            continue
        movements.append(append_movement(
            product_id=change.product_id,
            location_id=change.location_id,
            quantity=delta,
            movement_type=change.movement_type,
            reference_id=change.reference_id,
            reference_type=change.reference_type,
            notes=change.notes,
        ))
    return movements


def apply_delta(
    product_id: int,
    location_id: int,
    delta,
    movement_type: str,
    *,
    reference_id: int | None = None,
    reference_type: str | None = None,
    notes: str | None = None,
) -> StockMovement:
    qty = to_quantity(delta, field="delta")
    if qty == 0:
        raise InvalidInputError("delta must be non-zero", details={"field": "delta"})
    movements = apply_deltas([StockChange(
        product_id=product_id,
        location_id=location_id,
        delta=qty,
        movement_type=movement_type,
        reference_id=reference_id,
        reference_type=reference_type,
        notes=notes,
    )])
    return movements[0]


# =============================================================================
# Reads and reconciliation
# =============================================================================

def reconstruct(product_id: int, location_id: int) -> Decimal:
    """Quantity implied by the movement log alone."""
    total = (
        db.session.query(func.coalesce(func.sum(StockMovement.quantity), 0))
        .filter(
            StockMovement.product_id == product_id,
            StockMovement.location_id == location_id,
        )
        .scalar()
    )
    return Decimal(total or 0).quantize(QTY_QUANT)


def reconcile() -> list[dict]:
    """Every (product, location) whose stored level disagrees with its movements."""
    sums = {
        (row.product_id, row.location_id): Decimal(row.total or 0).quantize(QTY_QUANT)
        for row in db.session.query(
            StockMovement.product_id,
            StockMovement.location_id,
            func.sum(StockMovement.quantity).label("total"),
        ).group_by(StockMovement.product_id, StockMovement.location_id)
    }
    levels = {
        (level.product_id, level.location_id): Decimal(level.stock).quantize(QTY_QUANT)
        for level in db.session.query(StockLevel).all()
    }

    mismatches = []
    for key in sorted(set(sums) | set(levels)):
        stored = levels.get(key, ZERO)
        derived = sums.get(key, ZERO)
        if stored != derived:
            mismatches.append({
                "product_id": key[0],
                "location_id": key[1],
                "stock": format_quantity(stored),
                "movement_total": format_quantity(derived),
            })
    return mismatches


def get_product_location_stocks(product_id: int) -> list[StockLevel]:
    return (
        db.session.query(StockLevel)
        .filter(StockLevel.product_id == product_id)
        .order_by(StockLevel.location_id.asc())
        .all()
    )


def list_stock_levels(
    *,
    product_id: int | None = None,
    location_id: int | None = None,
) -> list[StockLevel]:
    query = db.session.query(StockLevel)
    if product_id is not None:
        query = query.filter(StockLevel.product_id == product_id)
    if location_id is not None:
        query = query.filter(StockLevel.location_id == location_id)
    return query.order_by(StockLevel.product_id.asc(), StockLevel.location_id.asc()).all()


def list_stock_movements(
    *,
    product_id: int | None = None,
    location_id: int | None = None,
    movement_type: str | None = None,
    reference_type: str | None = None,
    reference_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[StockMovement]:
    query = db.session.query(StockMovement)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if location_id is not None:
        query = query.filter(StockMovement.location_id == location_id)
    if movement_type:
        query = query.filter(StockMovement.movement_type == movement_type)
    if reference_type:
        query = query.filter(StockMovement.reference_type == reference_type)
    if reference_id is not None:
        query = query.filter(StockMovement.reference_id == reference_id)

    limit = min(max(limit, 1), 500)
    offset = max(offset, 0)
    return query.order_by(StockMovement.id.desc()).offset(offset).limit(limit).all()
