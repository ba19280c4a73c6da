# backend/stockroom/services/uom_service.py
"""
Unit-of-measure conversion resolver.

WHY: Quantities are entered in whatever unit is at hand (box, pack, kg) but
stock is stored in each product's base unit. Every operation converts first
and fails with MissingConversionError before touching stock.

RESOLUTION RULES:
- Identical units resolve to 1 without a lookup.
- A registered row from -> to multiplies by its rate; walked backwards it
  divides by the rate.
- Rows compose: box -> pack -> pcs resolves through pack. The shortest path
  in the undirected conversion graph wins; ties go to the lowest unit id,
  forward rows before reversed ones.
"""
from __future__ import annotations

import logging
from collections import deque
from decimal import Decimal, localcontext, ROUND_HALF_UP

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import InvalidInputError, MissingConversionError, NotFoundError
from ..models import UOM, UOMConversion, Product
from ..numbers import QTY_QUANT, to_quantity, to_positive_quantity
from .audit_service import record_audit_trail
from .catalog_service import get_uom
from .concurrency import run_in_transaction

logger = logging.getLogger(__name__)

ONE = Decimal(1)


def _conversion_graph() -> dict[int, list[tuple[int, Decimal, bool]]]:
    """Adjacency: uom_id -> [(neighbor_id, rate, inverse)] sorted for deterministic walks."""
    deleted = {
        row.id
        for row in db.session.query(UOM.id).filter(UOM.deleted_at.isnot(None)).all()
    }
    graph: dict[int, list[tuple[int, Decimal, bool]]] = {}
    for conv in db.session.query(UOMConversion).all():
        if conv.from_uom_id in deleted or conv.to_uom_id in deleted:
            continue
        rate = Decimal(conv.rate)
        graph.setdefault(conv.from_uom_id, []).append((conv.to_uom_id, rate, False))
        graph.setdefault(conv.to_uom_id, []).append((conv.from_uom_id, rate, True))
    for edges in graph.values():
        edges.sort(key=lambda e: (e[0], e[2]))
    return graph


def _find_path(from_uom_id: int, to_uom_id: int) -> list[tuple[Decimal, bool]] | None:
    graph = _conversion_graph()
    previous: dict[int, tuple[int, Decimal, bool]] = {}
    seen = {from_uom_id}
    queue = deque([from_uom_id])

    while queue:
        node = queue.popleft()
        if node == to_uom_id:
            break
        for neighbor, rate, inverse in graph.get(node, []):
            if neighbor in seen:
                continue
            seen.add(neighbor)
            previous[neighbor] = (node, rate, inverse)
            queue.append(neighbor)

    if to_uom_id not in previous:
        return None

    steps: list[tuple[Decimal, bool]] = []
    node = to_uom_id
    while node != from_uom_id:
        parent, rate, inverse = previous[node]
        steps.append((rate, inverse))
        node = parent
    steps.reverse()
    return steps


def _missing(from_uom_id: int, to_uom_id: int) -> MissingConversionError:
    return MissingConversionError(
        f"No conversion from UOM {from_uom_id} to UOM {to_uom_id}",
        details={"from_uom_id": from_uom_id, "to_uom_id": to_uom_id},
    )


def _apply_steps(value: Decimal, steps: list[tuple[Decimal, bool]]) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = 34
        for rate, inverse in steps:
            value = value / rate if inverse else value * rate
    return value


def resolve_rate(from_uom_id: int, to_uom_id: int) -> Decimal:
    """Multiplicative rate so that qty_in_to = qty_in_from * rate."""
    if from_uom_id == to_uom_id:
        return ONE
    steps = _find_path(from_uom_id, to_uom_id)
    if steps is None:
        raise _missing(from_uom_id, to_uom_id)
    return _apply_steps(ONE, steps)


def convert(quantity, from_uom_id: int, to_uom_id: int) -> Decimal:
    """Convert quantity; rounding happens once, after the whole path is walked."""
    qty = to_quantity(quantity)
    if from_uom_id == to_uom_id:
        return qty
    steps = _find_path(from_uom_id, to_uom_id)
    if steps is None:
        raise _missing(from_uom_id, to_uom_id)
    return _apply_steps(qty, steps).quantize(QTY_QUANT, rounding=ROUND_HALF_UP)


def available_units(base_uom_id: int) -> set[int]:
    """Units convertible to/from base_uom_id, the base unit included."""
    graph = _conversion_graph()
    seen = {base_uom_id}
    queue = deque([base_uom_id])
    while queue:
        node = queue.popleft()
        for neighbor, _rate, _inverse in graph.get(node, []):
            if neighbor not in seen:
                seen.add(neighbor)
                queue.append(neighbor)
    return seen


def to_base_quantity(product: Product, quantity, uom_id: int | None) -> Decimal:
    """
    Quantity in the product's base unit.

    A product without a base unit, or a line without a unit, keeps the
    quantity as entered.
    """
    if product.uom_id is None or uom_id is None or uom_id == product.uom_id:
        return to_quantity(quantity)
    return convert(quantity, uom_id, product.uom_id)


def to_positive_base_quantity(product: Product, quantity, uom_id: int | None) -> Decimal:
    """Like to_base_quantity, but a quantity that rounds away to nothing is an input error."""
    base = to_base_quantity(product, quantity, uom_id)
    if base <= 0:
        raise InvalidInputError(
            f"Quantity {quantity} rounds to zero in the base unit of product {product.id}",
            details={"field": "quantity", "product_id": product.id},
        )
    return base


# =============================================================================
# Conversion management
# =============================================================================

def list_conversions(uom_id: int | None = None) -> list[UOMConversion]:
    query = db.session.query(UOMConversion)
    if uom_id is not None:
        query = query.filter(
            (UOMConversion.from_uom_id == uom_id) | (UOMConversion.to_uom_id == uom_id)
        )
    return query.order_by(UOMConversion.id.asc()).all()


def get_conversion(conversion_id: int) -> UOMConversion:
    conv = db.session.get(UOMConversion, conversion_id)
    if conv is None:
        raise NotFoundError(
            f"UOM conversion {conversion_id} not found",
            details={"conversion_id": conversion_id},
        )
    return conv


def _validate_pair(from_uom_id, to_uom_id, rate, *, exclude_id: int | None = None) -> Decimal:
    if from_uom_id == to_uom_id:
        raise InvalidInputError(
            "Cannot convert a unit to itself",
            details={"from_uom_id": from_uom_id, "to_uom_id": to_uom_id},
        )
    get_uom(from_uom_id)
    get_uom(to_uom_id)
    rate = to_positive_quantity(rate, field="rate")

    # One row per unordered pair; the reverse direction is derived from it
    query = db.session.query(UOMConversion).filter(
        or_(
            and_(UOMConversion.from_uom_id == from_uom_id, UOMConversion.to_uom_id == to_uom_id),
            and_(UOMConversion.from_uom_id == to_uom_id, UOMConversion.to_uom_id == from_uom_id),
        )
    )
    if exclude_id is not None:
        query = query.filter(UOMConversion.id != exclude_id)
    if query.first() is not None:
        raise InvalidInputError(
            "Conversion already exists for this unit pair",
            details={"from_uom_id": from_uom_id, "to_uom_id": to_uom_id},
        )
    return rate


def create_conversion(from_uom_id: int, to_uom_id: int, rate) -> UOMConversion:
    def _op():
        checked_rate = _validate_pair(from_uom_id, to_uom_id, rate)
        conv = UOMConversion(from_uom_id=from_uom_id, to_uom_id=to_uom_id, rate=checked_rate)
        db.session.add(conv)
        try:
            db.session.flush()
        except IntegrityError:
            raise InvalidInputError(
                "Conversion already exists for this unit pair",
                details={"from_uom_id": from_uom_id, "to_uom_id": to_uom_id},
            )
        record_audit_trail(
            entity_type="uom_conversion",
            entity_id=conv.id,
            action="create",
            new_values=conv.to_dict(),
        )
        logger.info("UOM conversion %s created: %s -> %s x %s", conv.id, from_uom_id, to_uom_id, checked_rate)
        return conv

    return run_in_transaction(_op)


def update_conversion(
    conversion_id: int,
    *,
    from_uom_id: int | None = None,
    to_uom_id: int | None = None,
    rate=None,
) -> UOMConversion:
    """
    Change a registered conversion.

    Applied procurement/disposal effects are stored in base units, so a
    later rate change never rewrites stock that is already on the books.
    """
    def _op():
        conv = get_conversion(conversion_id)
        before = conv.to_dict()

        new_from = conv.from_uom_id if from_uom_id is None else from_uom_id
        new_to = conv.to_uom_id if to_uom_id is None else to_uom_id
        new_rate = conv.rate if rate is None else rate
        checked_rate = _validate_pair(new_from, new_to, new_rate, exclude_id=conv.id)

        conv.from_uom_id = new_from
        conv.to_uom_id = new_to
        conv.rate = checked_rate
        db.session.flush()
        db.session.refresh(conv)

        record_audit_trail(
            entity_type="uom_conversion",
            entity_id=conv.id,
            action="update",
            old_values=before,
            new_values=conv.to_dict(),
        )
        return conv

    return run_in_transaction(_op)


def delete_conversion(conversion_id: int) -> None:
    def _op():
        conv = get_conversion(conversion_id)
        before = conv.to_dict()
        db.session.delete(conv)
        db.session.flush()
        record_audit_trail(
            entity_type="uom_conversion",
            entity_id=conversion_id,
            action="delete",
            old_values=before,
        )

    run_in_transaction(_op)
