# Overview: Point-of-sale transactions; validates every line before any stock moves.

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from ..extensions import db
from ..errors import (
    InvalidInputError,
    InvalidStateTransitionError,
    MissingConversionError,
    NotFoundError,
)
from ..models import Sale, SaleItem
from ..models.sales import DISCOUNT_PERCENTAGE, DISCOUNT_TYPES
from ..numbers import round_cents, to_positive_quantity, to_quantity
from ..time_utils import normalize_datetime, utcnow
from .audit_service import record_audit_trail
from .catalog_service import get_location, get_product, get_uom
from .concurrency import lock_for_update, run_in_transaction
from .document_service import next_invoice_number
from .stock_service import StockChange, apply_deltas, check_availability
from .uom_service import to_positive_base_quantity
"""
Sale invariants

- A sale that is not deleted has removed every item's base_quantity from
  its location; a deleted sale has put it back.
- Validation (items, conversions, stock) completes before the invoice
  number is allocated or anything is written.
- total = subtotal - min(discount, subtotal); never negative.
"""

logger = logging.getLogger(__name__)

SALE_FIELDS = {"items", "location_id", "customer_name", "discount_type", "discount_value", "notes", "sold_at"}


@dataclass(frozen=True)
class PreparedItem:
    product_id: int
    quantity: Decimal
    uom_id: int | None
    base_quantity: Decimal
    unit_price_cents: int
    subtotal_cents: int
    label: str


def calculate_sale_totals(subtotal_cents: int, discount_type: str | None, discount_value) -> tuple[int, int]:
    """
    Return (discount_amount_cents, total_amount_cents).

    percentage: subtotal * value / 100; fixed: value in cents. The discount
    never exceeds the subtotal.
    """
    if discount_type is None:
        return 0, subtotal_cents
    if discount_type not in DISCOUNT_TYPES:
        raise InvalidInputError(
            f"Invalid discount type: {discount_type}",
            details={"field": "discount_type", "allowed": list(DISCOUNT_TYPES)},
        )
    value = to_quantity(discount_value if discount_value is not None else 0, field="discount_value")
    if value < 0:
        raise InvalidInputError("discount_value cannot be negative", details={"field": "discount_value"})

    if discount_type == DISCOUNT_PERCENTAGE:
        discount = round_cents(Decimal(subtotal_cents) * value / 100)
    else:
        discount = round_cents(value)
    discount = min(discount, subtotal_cents)
    return discount, subtotal_cents - discount


def _stored_discount_value(discount_type, discount_value):
    if discount_type is None:
        return None
    return to_quantity(discount_value if discount_value is not None else 0, field="discount_value")


def _prepare_item(index: int, raw) -> PreparedItem:
    label = f"item {index}"
    if not isinstance(raw, dict):
        raise InvalidInputError(f"{label} must be an object", details={"item": index})

    try:
        product = get_product(raw.get("product_id"))
        uom_id = raw.get("uom_id")
        if uom_id is not None:
            get_uom(uom_id)
        quantity = to_positive_quantity(raw.get("quantity"))

        unit_price = raw.get("unit_price_cents")
        if unit_price is None:
            unit_price = product.price_cents or 0
        if isinstance(unit_price, bool) or not isinstance(unit_price, int) or unit_price < 0:
            raise InvalidInputError(
                "unit_price_cents must be a non-negative integer",
                details={"field": "unit_price_cents"},
            )

        base_quantity = to_positive_base_quantity(product, quantity, uom_id)
    except (InvalidInputError, MissingConversionError, NotFoundError) as exc:
        exc.details = {**exc.details, "item": index}
        exc.message = f"{label}: {exc.message}"
        raise

    return PreparedItem(
        product_id=product.id,
        quantity=quantity,
        uom_id=uom_id,
        base_quantity=base_quantity,
        unit_price_cents=unit_price,
        subtotal_cents=round_cents(quantity * unit_price),
        label=label,
    )


def _prepare_items(items) -> list[PreparedItem]:
    if not items or not isinstance(items, list):
        raise InvalidInputError("A sale needs at least one item", details={"field": "items"})
    return [_prepare_item(i, raw) for i, raw in enumerate(items, start=1)]


def _existing_items(sale: Sale) -> list[PreparedItem]:
    return [
        PreparedItem(
            product_id=item.product_id,
            quantity=item.quantity,
            uom_id=item.uom_id,
            base_quantity=Decimal(item.base_quantity),
            unit_price_cents=item.unit_price_cents,
            subtotal_cents=item.subtotal_cents,
            label=f"item {i}",
        )
        for i, item in enumerate(sale.items, start=1)
    ]


def _stock_changes(
    prepared: list[PreparedItem],
    *,
    location_id: int,
    sign: int,
    sale_id: int | None = None,
    notes: str | None = None,
) -> list[StockChange]:
    return [
        StockChange(
            product_id=item.product_id,
            location_id=location_id,
            delta=sign * item.base_quantity,
            movement_type="sale",
            reference_id=sale_id,
            reference_type="sale",
            notes=notes,
            label=item.label,
        )
        for item in prepared
    ]


def _build_items(prepared: list[PreparedItem]) -> list[SaleItem]:
    return [
        SaleItem(
            product_id=item.product_id,
            quantity=item.quantity,
            uom_id=item.uom_id,
            base_quantity=item.base_quantity,
            unit_price_cents=item.unit_price_cents,
            subtotal_cents=item.subtotal_cents,
        )
        for item in prepared
    ]


def _sold_at(value):
    try:
        return normalize_datetime(value)
    except ValueError:
        raise InvalidInputError("sold_at must be an ISO-8601 datetime", details={"field": "sold_at"})


def _load_sale(sale_id: int, *, lock: bool = False) -> Sale:
    query = db.session.query(Sale).filter_by(id=sale_id)
    if lock:
        query = lock_for_update(query)
    sale = query.first()
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def create_sale(
    location_id: int,
    items,
    *,
    customer_name: str | None = None,
    discount_type: str | None = None,
    discount_value=None,
    notes: str | None = None,
    sold_at=None,
) -> Sale:
    def _op():
        get_location(location_id)
        prepared = _prepare_items(items)
        sold = _sold_at(sold_at)

        subtotal = sum(item.subtotal_cents for item in prepared)
        discount, total = calculate_sale_totals(subtotal, discount_type, discount_value)

        # All-or-nothing: every item is checked before a number is taken
        check_availability(_stock_changes(prepared, location_id=location_id, sign=-1))

        sale = Sale(
            location_id=location_id,
            customer_name=customer_name,
            invoice_number=next_invoice_number(sold),
            subtotal_cents=subtotal,
            discount_type=discount_type,
            discount_value=_stored_discount_value(discount_type, discount_value),
            discount_amount_cents=discount,
            total_amount_cents=total,
            notes=notes,
            sold_at=sold,
            items=_build_items(prepared),
        )
        db.session.add(sale)
        db.session.flush()

        apply_deltas(_stock_changes(
            prepared,
            location_id=location_id,
            sign=-1,
            sale_id=sale.id,
            notes=f"Sale {sale.invoice_number}",
        ))

        record_audit_trail(
            entity_type="sale",
            entity_id=sale.id,
            action="create",
            new_values=sale.to_dict(),
        )
        logger.info(
            "Sale %s (%s) posted at location %s: %s items, total %s cents",
            sale.id, sale.invoice_number, location_id, len(prepared), total,
        )
        return sale

    return run_in_transaction(_op)


def update_sale(sale_id: int, **changes) -> Sale:
    """
    Edit a sale. The old items' stock is put back and the new items' taken
    in one net batch, so the edit fails as a whole when the new items do
    not fit.
    """
    unknown = set(changes) - SALE_FIELDS
    if unknown:
        raise InvalidInputError(
            f"Unknown field(s): {', '.join(sorted(unknown))}",
            details={"fields": sorted(unknown)},
        )

    def _op():
        sale = _load_sale(sale_id, lock=True)
        if sale.deleted_at is not None:
            raise InvalidStateTransitionError(
                f"Cannot update deleted sale {sale.id}",
                details={"sale_id": sale.id},
            )
        before = sale.to_dict()

        location_id = changes.get("location_id", sale.location_id)
        get_location(location_id)
        old_items = _existing_items(sale)
        new_items = _prepare_items(changes["items"]) if "items" in changes else old_items

        discount_type = changes.get("discount_type", sale.discount_type)
        discount_value = changes.get("discount_value", sale.discount_value)
        if discount_type is None:
            discount_value = None
        subtotal = sum(item.subtotal_cents for item in new_items)
        discount, total = calculate_sale_totals(subtotal, discount_type, discount_value)
        sold = _sold_at(changes["sold_at"]) if "sold_at" in changes else sale.sold_at

        items_changed = "items" in changes or location_id != sale.location_id
        if items_changed:
            apply_deltas(
                _stock_changes(
                    old_items,
                    location_id=sale.location_id,
                    sign=1,
                    sale_id=sale.id,
                    notes=f"Reversal of sale {sale.invoice_number}",
                )
                + _stock_changes(
                    new_items,
                    location_id=location_id,
                    sign=-1,
                    sale_id=sale.id,
                    notes=f"Sale {sale.invoice_number} (edited)",
                )
            )
            sale.items.clear()
            db.session.flush()
            sale.items.extend(_build_items(new_items))

        sale.location_id = location_id
        if "customer_name" in changes:
            sale.customer_name = changes["customer_name"]
        if "notes" in changes:
            sale.notes = changes["notes"]
        sale.sold_at = sold
        sale.subtotal_cents = subtotal
        sale.discount_type = discount_type
        sale.discount_value = _stored_discount_value(discount_type, discount_value)
        sale.discount_amount_cents = discount
        sale.total_amount_cents = total
        db.session.flush()
        db.session.refresh(sale)

        record_audit_trail(
            entity_type="sale",
            entity_id=sale.id,
            action="update",
            old_values=before,
            new_values=sale.to_dict(),
        )
        return sale

    return run_in_transaction(_op)


def soft_delete_sale(sale_id: int) -> Sale:
    def _op():
        sale = _load_sale(sale_id, lock=True)
        if sale.deleted_at is not None:
            raise InvalidStateTransitionError(
                f"Sale {sale.id} is already deleted",
                details={"sale_id": sale.id},
            )
        before = sale.to_dict()

        apply_deltas(_stock_changes(
            _existing_items(sale),
            location_id=sale.location_id,
            sign=1,
            sale_id=sale.id,
            notes=f"Reversal of sale {sale.invoice_number}",
        ))
        sale.deleted_at = utcnow()
        db.session.flush()

        record_audit_trail(
            entity_type="sale",
            entity_id=sale.id,
            action="delete",
            old_values=before,
            new_values=sale.to_dict(),
        )
        logger.info("Sale %s deleted; stock returned to location %s", sale.id, sale.location_id)
        return sale

    return run_in_transaction(_op)


def restore_sale(sale_id: int) -> Sale:
    """Re-take the sale's stock. Fails, leaving the sale deleted, if it no longer fits."""
    def _op():
        sale = _load_sale(sale_id, lock=True)
        if sale.deleted_at is None:
            raise InvalidStateTransitionError(
                f"Sale {sale.id} is not deleted",
                details={"sale_id": sale.id},
            )
        before = sale.to_dict()

        apply_deltas(_stock_changes(
            _existing_items(sale),
            location_id=sale.location_id,
            sign=-1,
            sale_id=sale.id,
            notes=f"Sale {sale.invoice_number} (restored)",
        ))
        sale.deleted_at = None
        db.session.flush()

        record_audit_trail(
            entity_type="sale",
            entity_id=sale.id,
            action="restore",
            old_values=before,
            new_values=sale.to_dict(),
        )
        return sale

    return run_in_transaction(_op)


def get_sale(sale_id: int, *, include_deleted: bool = False) -> Sale:
    sale = _load_sale(sale_id)
    if sale.deleted_at is not None and not include_deleted:
        raise NotFoundError(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def list_sales(*, include_deleted: bool = False, location_id: int | None = None) -> list[Sale]:
    query = db.session.query(Sale)
    if not include_deleted:
        query = query.filter(Sale.deleted_at.is_(None))
    if location_id is not None:
        query = query.filter(Sale.location_id == location_id)
    return query.order_by(Sale.id.desc()).all()
