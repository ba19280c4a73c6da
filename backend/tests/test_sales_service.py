# Overview: Pytest coverage for sales: all-or-nothing stock checks, totals, invoice numbering, edits.

"""
Sale processor tests

A sale either moves stock for every line or for none. Every scenario
ends with the ledger reconciling against the stored levels.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from stockroom.errors import (
    InsufficientStockError,
    InvalidInputError,
    InvalidStateTransitionError,
    MissingConversionError,
    NotFoundError,
)
from stockroom.models import Sale, StockMovement
from stockroom.services import sales_service
from stockroom.services.sales_service import calculate_sale_totals


class TestAllOrNothing:
    def test_one_short_line_fails_the_whole_sale(
        self, db_session, make_product, warehouse, seed_stock, stock_of, assert_reconciled
    ):
        a = make_product("Product A")
        b = make_product("Product B")
        seed_stock(a.id, warehouse.id, 5)
        seed_stock(b.id, warehouse.id, 1)

        with pytest.raises(InsufficientStockError) as exc_info:
            sales_service.create_sale(warehouse.id, [
                {"product_id": a.id, "quantity": 3},
                {"product_id": b.id, "quantity": 4},
            ])

        err = exc_info.value
        assert err.message.startswith("item 2:")
        shortfall = err.details["shortfalls"][0]
        assert shortfall["product_id"] == b.id
        assert shortfall["available"] == "1"
        assert shortfall["requested"] == "4"
        assert shortfall["items"] == ["item 2"]

        assert stock_of(a.id, warehouse.id) == 5
        assert stock_of(b.id, warehouse.id) == 1
        assert db_session.query(Sale).count() == 0
        assert_reconciled()

    def test_lines_of_the_same_product_are_checked_together(self, db_session, product, warehouse, seed_stock, stock_of):
        seed_stock(product.id, warehouse.id, 5)

        with pytest.raises(InsufficientStockError) as exc_info:
            sales_service.create_sale(warehouse.id, [
                {"product_id": product.id, "quantity": 3},
                {"product_id": product.id, "quantity": 3},
            ])

        assert exc_info.value.details["shortfalls"][0]["items"] == ["item 1", "item 2"]
        assert stock_of(product.id, warehouse.id) == 5

    def test_lines_of_the_same_product_can_empty_the_shelf(
        self, db_session, product, warehouse, seed_stock, stock_of, assert_reconciled
    ):
        seed_stock(product.id, warehouse.id, 5)

        sales_service.create_sale(warehouse.id, [
            {"product_id": product.id, "quantity": 2},
            {"product_id": product.id, "quantity": 3},
        ])

        assert stock_of(product.id, warehouse.id) == 0
        assert_reconciled()

    def test_sale_posts_one_movement_per_line(self, db_session, product, warehouse, seed_stock):
        seed_stock(product.id, warehouse.id, 10)

        sale = sales_service.create_sale(warehouse.id, [{"product_id": product.id, "quantity": 4}])

        moves = StockMovement.query.filter_by(reference_type="sale", reference_id=sale.id).all()
        assert len(moves) == 1
        assert moves[0].movement_type == "sale"
        assert moves[0].quantity == Decimal(-4)
        assert moves[0].notes == f"Sale {sale.invoice_number}"


class TestUnitsOnSale:
    def test_box_sale_converts_to_pieces(
        self, db_session, product, warehouse, box, box_of_12, seed_stock, stock_of, assert_reconciled
    ):
        seed_stock(product.id, warehouse.id, 20)

        sale = sales_service.create_sale(warehouse.id, [
            {"product_id": product.id, "quantity": 1, "uom_id": box.id},
        ])

        item = sale.items[0]
        assert item.quantity == Decimal(1)
        assert item.base_quantity == Decimal(12)
        assert stock_of(product.id, warehouse.id) == 8
        assert_reconciled()

    def test_missing_conversion_blocks_the_sale(self, db_session, product, warehouse, box, seed_stock, stock_of):
        seed_stock(product.id, warehouse.id, 20)

        with pytest.raises(MissingConversionError) as exc_info:
            sales_service.create_sale(warehouse.id, [
                {"product_id": product.id, "quantity": 1, "uom_id": box.id},
            ])

        assert exc_info.value.details["item"] == 1
        assert stock_of(product.id, warehouse.id) == 20
        assert db_session.query(Sale).count() == 0


class TestTotals:
    def test_no_discount(self):
        assert calculate_sale_totals(3000, None, None) == (0, 3000)

    def test_percentage(self):
        assert calculate_sale_totals(3000, "percentage", 10) == (300, 2700)

    def test_percentage_rounds_half_up(self):
        assert calculate_sale_totals(1005, "percentage", 10) == (101, 904)

    def test_fixed(self):
        assert calculate_sale_totals(3000, "fixed", 500) == (500, 2500)

    def test_fixed_discount_is_clamped_to_subtotal(self):
        assert calculate_sale_totals(3000, "fixed", 5000) == (3000, 0)

    def test_unknown_discount_type(self):
        with pytest.raises(InvalidInputError):
            calculate_sale_totals(3000, "bogo", 1)

    def test_negative_discount(self):
        with pytest.raises(InvalidInputError):
            calculate_sale_totals(3000, "fixed", -1)

    def test_sale_stores_totals(self, db_session, product, warehouse, seed_stock):
        seed_stock(product.id, warehouse.id, 10)

        sale = sales_service.create_sale(
            warehouse.id,
            [{"product_id": product.id, "quantity": 3}],
            discount_type="percentage",
            discount_value=10,
            customer_name="Walk-in",
        )

        assert sale.subtotal_cents == 3000
        assert sale.discount_amount_cents == 300
        assert sale.total_amount_cents == 2700
        assert sale.items[0].unit_price_cents == 1000
        assert sale.items[0].subtotal_cents == 3000

    def test_line_price_override(self, db_session, product, warehouse, seed_stock):
        seed_stock(product.id, warehouse.id, 10)

        sale = sales_service.create_sale(
            warehouse.id, [{"product_id": product.id, "quantity": 2, "unit_price_cents": 750}]
        )

        assert sale.subtotal_cents == 1500


class TestValidation:
    def test_empty_items(self, db_session, warehouse):
        with pytest.raises(InvalidInputError):
            sales_service.create_sale(warehouse.id, [])

    @pytest.mark.parametrize("quantity", [0, -2, "x"])
    def test_bad_quantity_names_the_item(self, db_session, product, warehouse, seed_stock, quantity):
        seed_stock(product.id, warehouse.id, 10)
        with pytest.raises(InvalidInputError) as exc_info:
            sales_service.create_sale(warehouse.id, [
                {"product_id": product.id, "quantity": 1},
                {"product_id": product.id, "quantity": quantity},
            ])
        assert exc_info.value.details["item"] == 2

    def test_quantity_that_rounds_to_zero_names_the_item(
        self, db_session, make_product, warehouse, box, pcs, box_of_12, seed_stock, stock_of
    ):
        crate = make_product("Crate", uom_id=box.id)
        seed_stock(crate.id, warehouse.id, 5)

        with pytest.raises(InvalidInputError) as exc_info:
            sales_service.create_sale(warehouse.id, [
                {"product_id": crate.id, "quantity": "0.000001", "uom_id": pcs.id},
            ])

        assert exc_info.value.details["item"] == 1
        assert exc_info.value.message.startswith("item 1: ")
        assert sales_service.list_sales() == []
        assert stock_of(crate.id, warehouse.id) == 5

    def test_unknown_product(self, db_session, warehouse):
        with pytest.raises(NotFoundError):
            sales_service.create_sale(warehouse.id, [{"product_id": 404, "quantity": 1}])

    def test_unknown_location(self, db_session, product):
        with pytest.raises(NotFoundError):
            sales_service.create_sale(404, [{"product_id": product.id, "quantity": 1}])


class TestInvoiceNumbers:
    def test_sequential_within_month(self, db_session, product, warehouse, seed_stock):
        seed_stock(product.id, warehouse.id, 10)
        line = [{"product_id": product.id, "quantity": 1}]

        first = sales_service.create_sale(warehouse.id, line, sold_at="2026-03-15T10:00:00Z")
        second = sales_service.create_sale(warehouse.id, line, sold_at="2026-03-20T10:00:00Z")
        april = sales_service.create_sale(warehouse.id, line, sold_at="2026-04-01T08:00:00Z")

        assert first.invoice_number == "INV-202603-0001"
        assert second.invoice_number == "INV-202603-0002"
        assert april.invoice_number == "INV-202604-0001"

    def test_failed_sale_does_not_consume_a_number(self, db_session, product, warehouse, seed_stock):
        seed_stock(product.id, warehouse.id, 1)

        with pytest.raises(InsufficientStockError):
            sales_service.create_sale(
                warehouse.id, [{"product_id": product.id, "quantity": 5}], sold_at="2026-03-15T10:00:00Z"
            )
        sale = sales_service.create_sale(
            warehouse.id, [{"product_id": product.id, "quantity": 1}], sold_at="2026-03-15T10:00:00Z"
        )

        assert sale.invoice_number == "INV-202603-0001"

    def test_continues_after_existing_invoices(self, db_session, product, warehouse, seed_stock):
        db_session.add(Sale(
            location_id=warehouse.id,
            invoice_number="INV-202603-0007",
            sold_at=datetime(2026, 3, 2, 9, 0),
        ))
        db_session.commit()
        seed_stock(product.id, warehouse.id, 10)

        sale = sales_service.create_sale(
            warehouse.id, [{"product_id": product.id, "quantity": 1}], sold_at="2026-03-15T10:00:00Z"
        )

        assert sale.invoice_number == "INV-202603-0008"


class TestSaleEdits:
    def test_item_edit_moves_only_the_difference(
        self, db_session, product, warehouse, seed_stock, stock_of, assert_reconciled
    ):
        seed_stock(product.id, warehouse.id, 10)
        sale = sales_service.create_sale(warehouse.id, [{"product_id": product.id, "quantity": 3}])

        updated = sales_service.update_sale(sale.id, items=[{"product_id": product.id, "quantity": 5}])

        assert stock_of(product.id, warehouse.id) == 5
        assert updated.subtotal_cents == 5000
        assert len(updated.items) == 1
        assert updated.invoice_number == sale.invoice_number
        assert_reconciled()

    def test_edit_that_does_not_fit_changes_nothing(self, db_session, product, warehouse, seed_stock, stock_of):
        seed_stock(product.id, warehouse.id, 10)
        sale = sales_service.create_sale(warehouse.id, [{"product_id": product.id, "quantity": 3}])

        with pytest.raises(InsufficientStockError):
            sales_service.update_sale(sale.id, items=[{"product_id": product.id, "quantity": 20}])

        assert stock_of(product.id, warehouse.id) == 7
        assert sales_service.get_sale(sale.id).items[0].quantity == Decimal(3)

    def test_location_edit(self, db_session, product, warehouse, store, seed_stock, stock_of, assert_reconciled):
        seed_stock(product.id, warehouse.id, 10)
        seed_stock(product.id, store.id, 10)
        sale = sales_service.create_sale(warehouse.id, [{"product_id": product.id, "quantity": 3}])

        sales_service.update_sale(sale.id, location_id=store.id)

        assert stock_of(product.id, warehouse.id) == 10
        assert stock_of(product.id, store.id) == 7
        assert_reconciled()

    def test_discount_edit_recomputes_totals(self, db_session, product, warehouse, seed_stock):
        seed_stock(product.id, warehouse.id, 10)
        sale = sales_service.create_sale(warehouse.id, [{"product_id": product.id, "quantity": 2}])

        updated = sales_service.update_sale(sale.id, discount_type="fixed", discount_value=500)

        assert updated.discount_amount_cents == 500
        assert updated.total_amount_cents == 1500

    def test_unknown_field(self, db_session):
        with pytest.raises(InvalidInputError):
            sales_service.update_sale(1, invoice_number="X")


class TestSaleDeletion:
    def test_delete_returns_stock_and_restore_takes_it_again(
        self, db_session, product, warehouse, seed_stock, stock_of, assert_reconciled
    ):
        seed_stock(product.id, warehouse.id, 10)
        sale = sales_service.create_sale(warehouse.id, [{"product_id": product.id, "quantity": 4}])

        sales_service.soft_delete_sale(sale.id)
        assert stock_of(product.id, warehouse.id) == 10
        assert sales_service.list_sales() == []
        with pytest.raises(NotFoundError):
            sales_service.get_sale(sale.id)

        sales_service.restore_sale(sale.id)
        assert stock_of(product.id, warehouse.id) == 6
        assert_reconciled()

    def test_restore_fails_when_stock_sold_elsewhere(
        self, db_session, product, warehouse, seed_stock, stock_of, assert_reconciled
    ):
        seed_stock(product.id, warehouse.id, 10)
        sale = sales_service.create_sale(warehouse.id, [{"product_id": product.id, "quantity": 4}])
        sales_service.soft_delete_sale(sale.id)
        sales_service.create_sale(warehouse.id, [{"product_id": product.id, "quantity": 8}])

        with pytest.raises(InsufficientStockError):
            sales_service.restore_sale(sale.id)

        assert sales_service.get_sale(sale.id, include_deleted=True).is_deleted
        assert stock_of(product.id, warehouse.id) == 2
        assert_reconciled()

    def test_deleted_sale_cannot_be_edited_or_deleted_again(self, db_session, product, warehouse, seed_stock):
        seed_stock(product.id, warehouse.id, 10)
        sale = sales_service.create_sale(warehouse.id, [{"product_id": product.id, "quantity": 1}])
        sales_service.soft_delete_sale(sale.id)

        with pytest.raises(InvalidStateTransitionError):
            sales_service.soft_delete_sale(sale.id)
        with pytest.raises(InvalidStateTransitionError):
            sales_service.update_sale(sale.id, notes="late edit")
