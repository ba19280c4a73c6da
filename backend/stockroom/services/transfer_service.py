# backend/stockroom/services/transfer_service.py
"""
Inter-location stock transfer.

WHY: Moving stock between a warehouse and a store front must never create
or lose units. The source decrement and destination increment are posted
as one validated batch, and the two movements point at each other through
reference_id so either side leads to its counterpart.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from ..errors import InvalidInputError
from ..extensions import db
from ..models import StockMovement
from ..numbers import format_quantity, to_positive_quantity
from .audit_service import record_audit_trail
from .catalog_service import get_location, get_product, get_uom
from .concurrency import run_in_transaction
from .stock_service import StockChange, apply_deltas
from .uom_service import to_positive_base_quantity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferResult:
    product_id: int
    from_location_id: int
    to_location_id: int
    quantity: Decimal
    outgoing: StockMovement
    incoming: StockMovement

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "from_location_id": self.from_location_id,
            "to_location_id": self.to_location_id,
            "quantity": format_quantity(self.quantity),
            "outgoing_movement": self.outgoing.to_dict(),
            "incoming_movement": self.incoming.to_dict(),
        }


def transfer_stock(
    product_id: int,
    from_location_id: int,
    to_location_id: int,
    quantity,
    *,
    notes: str | None = None,
    uom_id: int | None = None,
) -> TransferResult:
    """
    Move quantity (in uom_id, default the base unit) between two locations.

    Raises:
        InvalidInputError: same location twice, non-positive quantity
        MissingConversionError: uom_id has no path to the base unit
        InsufficientStockError: the source holds less than requested
    """
    def _op():
        if from_location_id == to_location_id:
            raise InvalidInputError(
                "Source and destination locations must differ",
                details={"from_location_id": from_location_id, "to_location_id": to_location_id},
            )
        product = get_product(product_id)
        source = get_location(from_location_id)
        destination = get_location(to_location_id)
        if uom_id is not None:
            get_uom(uom_id)
        qty = to_positive_quantity(quantity)
        base = to_positive_base_quantity(product, qty, uom_id)

        note = notes or f"Transfer {source.name} -> {destination.name}"
        outgoing, incoming = apply_deltas([
            StockChange(
                product_id=product_id,
                location_id=from_location_id,
                delta=-base,
                movement_type="transfer",
                reference_type="transfer",
                notes=note,
                label="transfer",
            ),
            StockChange(
                product_id=product_id,
                location_id=to_location_id,
                delta=base,
                movement_type="transfer",
                reference_type="transfer",
                notes=note,
                label="transfer",
            ),
        ])
        outgoing.reference_id = incoming.id
        incoming.reference_id = outgoing.id
        db.session.flush()

        result = TransferResult(
            product_id=product_id,
            from_location_id=from_location_id,
            to_location_id=to_location_id,
            quantity=base,
            outgoing=outgoing,
            incoming=incoming,
        )
        record_audit_trail(
            entity_type="transfer",
            entity_id=outgoing.id,
            action="create",
            new_values=result.to_dict(),
            notes=notes,
        )
        logger.info(
            "Transferred %s of product %s from location %s to %s",
            base, product_id, from_location_id, to_location_id,
        )
        return result

    return run_in_transaction(_op)
