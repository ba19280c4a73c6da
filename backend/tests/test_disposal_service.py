# Overview: Pytest coverage for disposals (stock write-offs) and their stock checks.

from decimal import Decimal

import pytest

from stockroom.errors import InsufficientStockError, InvalidInputError, InvalidStateTransitionError
from stockroom.services import disposal_service, sales_service


class TestDisposalLifecycle:
    def test_create_requires_stock(self, db_session, product, warehouse):
        with pytest.raises(InsufficientStockError) as exc_info:
            disposal_service.create_disposal(
                product_id=product.id, location_id=warehouse.id, quantity=3, reason="damaged"
            )
        shortfall = exc_info.value.details["shortfalls"][0]
        assert shortfall["available"] == "0"
        assert shortfall["requested"] == "3"
        assert disposal_service.list_disposals() == []

    def test_create_does_not_touch_stock(self, db_session, product, warehouse, seed_stock, stock_of):
        seed_stock(product.id, warehouse.id, 10)
        disposal = disposal_service.create_disposal(
            product_id=product.id, location_id=warehouse.id, quantity=3, reason="expired"
        )
        assert disposal.status == "pending"
        assert disposal.reason == "expired"
        assert stock_of(product.id, warehouse.id) == 10

    def test_approve_decrements(self, db_session, product, warehouse, seed_stock, stock_of, assert_reconciled):
        seed_stock(product.id, warehouse.id, 10)
        disposal = disposal_service.create_disposal(
            product_id=product.id, location_id=warehouse.id, quantity=3
        )

        approved = disposal_service.approve_disposal(disposal.id)

        assert approved.applied_quantity == Decimal(3)
        assert stock_of(product.id, warehouse.id) == 7
        assert_reconciled()

    def test_approve_rechecks_stock(self, db_session, product, warehouse, seed_stock, stock_of):
        seed_stock(product.id, warehouse.id, 5)
        disposal = disposal_service.create_disposal(
            product_id=product.id, location_id=warehouse.id, quantity=4
        )
        sales_service.create_sale(warehouse.id, [{"product_id": product.id, "quantity": 3}])

        with pytest.raises(InsufficientStockError):
            disposal_service.approve_disposal(disposal.id)

        assert disposal_service.get_disposal(disposal.id).status == "pending"
        assert stock_of(product.id, warehouse.id) == 2

    def test_reject_after_approve_restores(self, db_session, product, warehouse, seed_stock, stock_of, assert_reconciled):
        seed_stock(product.id, warehouse.id, 10)
        disposal = disposal_service.create_disposal(
            product_id=product.id, location_id=warehouse.id, quantity=3
        )
        disposal_service.approve_disposal(disposal.id)

        disposal_service.reject_disposal(disposal.id)

        assert stock_of(product.id, warehouse.id) == 10
        assert_reconciled()

    def test_quantity_edit_on_approved_row(self, db_session, product, warehouse, seed_stock, stock_of, assert_reconciled):
        seed_stock(product.id, warehouse.id, 10)
        disposal = disposal_service.create_disposal(
            product_id=product.id, location_id=warehouse.id, quantity=3
        )
        disposal_service.approve_disposal(disposal.id)

        disposal_service.update_disposal(disposal.id, quantity=5, reason="water damage")

        assert stock_of(product.id, warehouse.id) == 5
        assert disposal_service.get_disposal(disposal.id).reason == "water damage"

        with pytest.raises(InsufficientStockError):
            disposal_service.update_disposal(disposal.id, quantity=11)
        assert stock_of(product.id, warehouse.id) == 5
        assert_reconciled()

    def test_converted_quantity(self, db_session, product, warehouse, box, box_of_12, seed_stock, stock_of):
        seed_stock(product.id, warehouse.id, 30)
        disposal = disposal_service.create_disposal(
            product_id=product.id, location_id=warehouse.id, quantity=2, uom_id=box.id
        )
        disposal_service.approve_disposal(disposal.id)

        assert stock_of(product.id, warehouse.id) == 6

    def test_converted_quantity_checked_on_create(self, db_session, product, warehouse, box, box_of_12, seed_stock):
        seed_stock(product.id, warehouse.id, 20)
        with pytest.raises(InsufficientStockError):
            disposal_service.create_disposal(
                product_id=product.id, location_id=warehouse.id, quantity=2, uom_id=box.id
            )

    def test_quantity_that_rounds_to_zero_is_rejected(
        self, db_session, make_product, warehouse, box, pcs, box_of_12, seed_stock
    ):
        crate = make_product("Crate", uom_id=box.id)
        seed_stock(crate.id, warehouse.id, 5)

        with pytest.raises(InvalidInputError) as exc_info:
            disposal_service.create_disposal(
                product_id=crate.id, location_id=warehouse.id, quantity="0.000001", uom_id=pcs.id
            )

        assert exc_info.value.details["field"] == "quantity"
        assert disposal_service.list_disposals() == []


class TestDisposalDeletion:
    def test_delete_returns_stock(self, db_session, product, warehouse, seed_stock, stock_of, assert_reconciled):
        seed_stock(product.id, warehouse.id, 10)
        disposal = disposal_service.create_disposal(
            product_id=product.id, location_id=warehouse.id, quantity=4
        )
        disposal_service.approve_disposal(disposal.id)

        disposal_service.delete_disposal(disposal.id)

        assert stock_of(product.id, warehouse.id) == 10
        assert disposal_service.get_disposal(disposal.id, include_deleted=True).is_deleted
        assert_reconciled()

    def test_restore_fails_when_stock_is_gone(self, db_session, product, warehouse, seed_stock, stock_of, assert_reconciled):
        seed_stock(product.id, warehouse.id, 10)
        disposal = disposal_service.create_disposal(
            product_id=product.id, location_id=warehouse.id, quantity=4
        )
        disposal_service.approve_disposal(disposal.id)
        disposal_service.delete_disposal(disposal.id)
        sales_service.create_sale(warehouse.id, [{"product_id": product.id, "quantity": 8}])

        with pytest.raises(InsufficientStockError):
            disposal_service.restore_disposal(disposal.id)

        assert disposal_service.get_disposal(disposal.id, include_deleted=True).is_deleted
        assert stock_of(product.id, warehouse.id) == 2
        assert_reconciled()

    def test_restore_requires_deleted(self, db_session, product, warehouse, seed_stock):
        seed_stock(product.id, warehouse.id, 10)
        disposal = disposal_service.create_disposal(
            product_id=product.id, location_id=warehouse.id, quantity=4
        )
        with pytest.raises(InvalidStateTransitionError):
            disposal_service.restore_disposal(disposal.id)
