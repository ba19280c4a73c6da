# Overview: Pytest coverage for the dashboard reports (daily series, top products, per-location stats, summary).

from datetime import datetime

import pytest

from stockroom.errors import InvalidInputError
from stockroom.services import (
    disposal_service,
    procurement_service,
    reporting_service,
    sales_service,
)
from stockroom.time_utils import utcnow


@pytest.fixture
def sell(seed_stock):
    def _sell(product, location, quantity, day, **kwargs):
        seed_stock(product.id, location.id, quantity)
        return sales_service.create_sale(
            location.id,
            [{"product_id": product.id, "quantity": quantity, **kwargs}],
            sold_at=datetime.fromisoformat(f"{day}T10:00:00"),
        )
    return _sell


def _backdate(db_session, row, day):
    row.created_at = datetime.fromisoformat(f"{day}T09:00:00")
    db_session.commit()


class TestSalesByDate:
    def test_groups_by_sale_day(self, db_session, product, warehouse, sell):
        sell(product, warehouse, 2, "2026-10-01")
        sell(product, warehouse, 1, "2026-10-01")
        sell(product, warehouse, 3, "2026-10-03")

        report = reporting_service.get_sales_by_date()

        assert report["rows"] == [
            {"date": "2026-10-01", "total_sales": 2, "transaction_count": 2, "total_revenue_cents": 3000},
            {"date": "2026-10-03", "total_sales": 1, "transaction_count": 1, "total_revenue_cents": 3000},
        ]

    def test_range_is_inclusive_and_skips_deleted(self, db_session, product, warehouse, sell):
        sell(product, warehouse, 1, "2026-09-30")
        sell(product, warehouse, 1, "2026-10-01")
        dropped = sell(product, warehouse, 1, "2026-10-02")
        sales_service.soft_delete_sale(dropped.id)
        sell(product, warehouse, 1, "2026-10-05")

        report = reporting_service.get_sales_by_date("2026-10-01", "2026-10-05")

        assert [row["date"] for row in report["rows"]] == ["2026-10-01", "2026-10-05"]
        assert report["date_from"] == "2026-10-01"
        assert report["date_to"] == "2026-10-05"

    def test_datetime_bounds_use_their_day(self, db_session, product, warehouse, sell):
        sell(product, warehouse, 1, "2026-10-01")

        report = reporting_service.get_sales_by_date(date_to="2026-10-01T00:00:00Z")

        assert len(report["rows"]) == 1

    @pytest.mark.parametrize("bounds", [("yesterday", None), ("2026-10-05", "2026-10-01")])
    def test_bad_range_rejected(self, db_session, bounds):
        with pytest.raises(InvalidInputError):
            reporting_service.get_sales_by_date(*bounds)


class TestAdjustmentSeries:
    def test_procurements_by_date(self, db_session, product, warehouse):
        first = procurement_service.create_procurement(
            product_id=product.id, location_id=warehouse.id, quantity=10, unit_price_cents=250
        )
        procurement_service.approve_procurement(first.id)
        second = procurement_service.create_procurement(
            product_id=product.id, location_id=warehouse.id, quantity="2.5"
        )
        gone = procurement_service.create_procurement(
            product_id=product.id, location_id=warehouse.id, quantity=99, unit_price_cents=1
        )
        procurement_service.delete_procurement(gone.id)
        for row in (first, second, gone):
            _backdate(db_session, row, "2026-10-02")

        report = reporting_service.get_procurements_by_date()

        assert report["rows"] == [{
            "date": "2026-10-02",
            "total_procurements": 2,
            "total_quantity": "12.5",
            "total_value_cents": 2500,
            "approved_count": 1,
            "pending_count": 1,
        }]

    def test_disposals_by_date(self, db_session, product, warehouse, seed_stock):
        seed_stock(product.id, warehouse.id, 20)
        first = disposal_service.create_disposal(
            product_id=product.id, location_id=warehouse.id, quantity=3, reason="damaged"
        )
        disposal_service.approve_disposal(first.id)
        second = disposal_service.create_disposal(
            product_id=product.id, location_id=warehouse.id, quantity=1, reason="expired"
        )
        disposal_service.reject_disposal(second.id)
        _backdate(db_session, first, "2026-10-04")
        _backdate(db_session, second, "2026-10-06")

        report = reporting_service.get_disposals_by_date(date_from="2026-10-05")

        assert report["rows"] == [{
            "date": "2026-10-06",
            "total_disposals": 1,
            "total_quantity": "1",
            "approved_count": 0,
            "pending_count": 0,
        }]


class TestTopProducts:
    def test_ranked_by_revenue(self, db_session, make_product, warehouse, sell):
        cheap = make_product("Cheap", price_cents=100)
        dear = make_product("Dear", price_cents=5000)
        sell(cheap, warehouse, 10, "2026-10-01")
        sell(cheap, warehouse, 5, "2026-10-02")
        sell(dear, warehouse, 1, "2026-10-02")

        rows = reporting_service.get_top_products()["rows"]

        assert [(r["product_name"], r["total_revenue_cents"], r["transaction_count"]) for r in rows] == [
            ("Dear", 5000, 1),
            ("Cheap", 1500, 2),
        ]
        assert rows[1]["total_quantity_sold"] == "15"

    def test_quantity_is_in_base_units(self, db_session, product, warehouse, box, box_of_12, seed_stock):
        seed_stock(product.id, warehouse.id, 30)
        sales_service.create_sale(warehouse.id, [
            {"product_id": product.id, "quantity": 2, "uom_id": box.id},
            {"product_id": product.id, "quantity": 1},
        ])

        row = reporting_service.get_top_products()["rows"][0]

        assert row["total_quantity_sold"] == "25"
        assert row["transaction_count"] == 1

    def test_limit_and_deleted_products(self, db_session, make_product, warehouse, sell):
        kept = make_product("Kept")
        retired = make_product("Retired", price_cents=9000)
        sell(kept, warehouse, 1, "2026-10-01")
        sell(retired, warehouse, 1, "2026-10-01")
        retired.deleted_at = utcnow()
        db_session.commit()

        rows = reporting_service.get_top_products(limit=1)["rows"]

        assert [r["product_id"] for r in rows] == [kept.id]

    @pytest.mark.parametrize("limit", [0, 101, "5", True])
    def test_bad_limit(self, db_session, limit):
        with pytest.raises(InvalidInputError):
            reporting_service.get_top_products(limit=limit)


class TestLocationStats:
    def test_per_location_revenue(self, db_session, product, warehouse, store, sell):
        sell(product, warehouse, 1, "2026-10-01")
        sell(product, store, 2, "2026-10-01")
        sell(product, store, 1, "2026-10-02")

        rows = reporting_service.get_location_stats()["rows"]

        assert rows == [
            {
                "location_id": store.id,
                "location_name": "Front Store",
                "location_type": "store",
                "total_sales": 2,
                "total_revenue_cents": 3000,
                "transaction_count": 2,
            },
            {
                "location_id": warehouse.id,
                "location_name": "Main Warehouse",
                "location_type": "warehouse",
                "total_sales": 1,
                "total_revenue_cents": 1000,
                "transaction_count": 1,
            },
        ]


class TestDashboardSummary:
    def test_summary_counts(self, db_session, make_product, warehouse, store, seed_stock, sell):
        widget = make_product("Widget")
        make_product("Spare")
        sell(widget, warehouse, 2, "2026-10-01")
        sell(widget, store, 1, "2026-09-01")
        proc = procurement_service.create_procurement(
            product_id=widget.id, location_id=warehouse.id, quantity=4, unit_price_cents=300
        )
        _backdate(db_session, proc, "2026-10-02")
        seed_stock(widget.id, warehouse.id, 5)
        disposal = disposal_service.create_disposal(
            product_id=widget.id, location_id=warehouse.id, quantity=1
        )
        _backdate(db_session, disposal, "2026-10-03")

        summary = reporting_service.get_dashboard_summary(date_from="2026-10-01")

        assert summary == {
            "date_from": "2026-10-01",
            "date_to": None,
            "total_revenue_cents": 2000,
            "total_sales_count": 1,
            "total_procurements_value_cents": 1200,
            "total_procurements_count": 1,
            "total_disposals_count": 1,
            "total_products": 2,
            "total_locations": 2,
        }

    def test_empty_database(self, db_session):
        summary = reporting_service.get_dashboard_summary()

        assert summary["total_revenue_cents"] == 0
        assert summary["total_sales_count"] == 0
        assert summary["total_procurements_value_cents"] == 0
        assert summary["total_products"] == 0
