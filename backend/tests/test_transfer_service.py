# Overview: Pytest coverage for inter-location transfers.

from decimal import Decimal

import pytest

from stockroom.errors import InsufficientStockError, InvalidInputError, MissingConversionError
from stockroom.models import AuditTrail, StockMovement
from stockroom.services import transfer_service


class TestTransfers:
    def test_transfer_moves_stock_and_pairs_movements(
        self, db_session, product, warehouse, store, seed_stock, stock_of, assert_reconciled
    ):
        seed_stock(product.id, warehouse.id, 100)

        result = transfer_service.transfer_stock(product.id, warehouse.id, store.id, 30)

        assert stock_of(product.id, warehouse.id) == 70
        assert stock_of(product.id, store.id) == 30

        out, inc = result.outgoing, result.incoming
        assert out.movement_type == inc.movement_type == "transfer"
        assert out.quantity == Decimal(-30)
        assert inc.quantity == Decimal(30)
        assert out.reference_id == inc.id
        assert inc.reference_id == out.id
        assert_reconciled()

    def test_to_dict(self, db_session, product, warehouse, store, seed_stock):
        seed_stock(product.id, warehouse.id, 10)

        data = transfer_service.transfer_stock(product.id, warehouse.id, store.id, "2.5").to_dict()

        assert data["quantity"] == "2.5"
        assert data["outgoing_movement"]["quantity"] == "-2.5"
        assert data["incoming_movement"]["location_id"] == store.id

    def test_same_location_rejected(self, db_session, product, warehouse, seed_stock, stock_of):
        seed_stock(product.id, warehouse.id, 10)

        with pytest.raises(InvalidInputError):
            transfer_service.transfer_stock(product.id, warehouse.id, warehouse.id, 1)

        assert stock_of(product.id, warehouse.id) == 10

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_non_positive_quantity_rejected(self, db_session, product, warehouse, store, quantity):
        with pytest.raises(InvalidInputError):
            transfer_service.transfer_stock(product.id, warehouse.id, store.id, quantity)

    def test_insufficient_source(self, db_session, product, warehouse, store, seed_stock, stock_of, assert_reconciled):
        seed_stock(product.id, warehouse.id, 5)

        with pytest.raises(InsufficientStockError) as exc_info:
            transfer_service.transfer_stock(product.id, warehouse.id, store.id, 6)

        assert exc_info.value.details["shortfalls"][0]["location_id"] == warehouse.id
        assert stock_of(product.id, warehouse.id) == 5
        assert stock_of(product.id, store.id) == 0
        assert_reconciled()

    def test_transfer_in_boxes(self, db_session, product, warehouse, store, box, box_of_12, seed_stock, stock_of):
        seed_stock(product.id, warehouse.id, 30)

        result = transfer_service.transfer_stock(product.id, warehouse.id, store.id, 2, uom_id=box.id)

        assert result.quantity == Decimal(24)
        assert stock_of(product.id, warehouse.id) == 6
        assert stock_of(product.id, store.id) == 24

    def test_transfer_without_conversion(self, db_session, product, warehouse, store, box, seed_stock):
        seed_stock(product.id, warehouse.id, 30)

        with pytest.raises(MissingConversionError):
            transfer_service.transfer_stock(product.id, warehouse.id, store.id, 1, uom_id=box.id)

    def test_quantity_that_rounds_to_zero_is_rejected(
        self, db_session, make_product, warehouse, store, box, pcs, box_of_12, seed_stock, stock_of
    ):
        crate = make_product("Crate", uom_id=box.id)
        seed_stock(crate.id, warehouse.id, 5)

        with pytest.raises(InvalidInputError):
            transfer_service.transfer_stock(crate.id, warehouse.id, store.id, "0.000001", uom_id=pcs.id)

        assert stock_of(crate.id, warehouse.id) == 5
        assert stock_of(crate.id, store.id) == 0
        assert StockMovement.query.filter_by(movement_type="transfer").count() == 0

    def test_transfer_is_audited(self, db_session, product, warehouse, store, seed_stock):
        seed_stock(product.id, warehouse.id, 10)

        result = transfer_service.transfer_stock(product.id, warehouse.id, store.id, 4, notes="restock shelf")

        entry = db_session.query(AuditTrail).filter_by(entity_type="transfer").one()
        assert entry.entity_id == result.outgoing.id
        assert entry.action == "create"
        assert entry.notes == "restock shelf"
        assert entry.new_values["quantity"] == "4"
