# Overview: Pytest coverage for low-stock alerts and dashboard summaries.

from stockroom.services import monitoring_service
from stockroom.time_utils import utcnow


class TestLowStock:
    def test_unstocked_pairs_count_as_zero(self, db_session, product, warehouse, store, seed_stock):
        seed_stock(product.id, warehouse.id, 50)

        alerts = monitoring_service.get_low_stock_alerts()

        assert [(a["product_id"], a["location_id"], a["stock"]) for a in alerts] == [
            (product.id, store.id, "0"),
        ]
        assert alerts[0]["threshold"] == "10"

    def test_threshold_is_inclusive(self, db_session, product, warehouse, seed_stock):
        seed_stock(product.id, warehouse.id, 5)

        assert len(monitoring_service.get_low_stock_alerts(threshold=5)) == 1
        assert monitoring_service.get_low_stock_alerts(threshold=4) == []

    def test_deleted_products_are_ignored(self, db_session, product, warehouse):
        product.deleted_at = utcnow()
        db_session.commit()

        assert monitoring_service.get_low_stock_alerts() == []


class TestSummary:
    def test_summary_totals(self, db_session, make_product, warehouse, store, seed_stock):
        stocked = make_product("Stocked", price_cents=250)
        make_product("Empty")
        seed_stock(stocked.id, warehouse.id, 40)
        seed_stock(stocked.id, store.id, 4)

        summary = monitoring_service.get_stock_summary()

        assert summary == {
            "total_products": 2,
            "total_locations": 2,
            "total_quantity": "44",
            "total_value_cents": 11000,
            "products_with_stock": 1,
            "products_without_stock": 1,
            "low_stock_count": 3,
        }

    def test_location_totals(self, db_session, product, warehouse, store, seed_stock):
        seed_stock(product.id, warehouse.id, 3)

        totals = {row["location_id"]: row for row in monitoring_service.get_location_stock_totals()}

        assert totals[warehouse.id]["total_quantity"] == "3"
        assert totals[warehouse.id]["total_value_cents"] == 3000
        assert totals[warehouse.id]["product_count"] == 1
        assert totals[store.id]["total_quantity"] == "0"
        assert totals[store.id]["product_count"] == 0
