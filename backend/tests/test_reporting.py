"""
Inventory summary tests.

Verifies:
- Per-store totals, value and low/out-of-stock counts
- Stores sorted by total quantity, highest first
- Inactive products and stores are excluded
"""

from decimal import Decimal

from voyapos.models import Product, Store
from voyapos.services.reporting_service import inventory_summary

from conftest import set_quantity


class TestInventorySummary:

    def test_per_store_and_grand_totals(self, db_session, store, other_store, product, second_product):
        set_quantity(db_session, product, store, 3)         # low
        set_quantity(db_session, second_product, store, 0)  # out
        set_quantity(db_session, product, other_store, 20)
        set_quantity(db_session, second_product, other_store, 5)

        summary = inventory_summary()

        assert summary["total_products"] == 2
        assert summary["total_stores"] == 2
        assert summary["grand_total_quantity"] == 28
        assert summary["low_stock_count"] == 1
        assert summary["out_of_stock_count"] == 1
        assert summary["total_inventory_value"] == 118.00 * 23 + 1050.00 * 5

        first, second = summary["by_store"]
        assert first["store_name"] == "Airport"
        assert first["total_quantity"] == 25
        assert first["products_with_stock"] == 2
        assert first["low_stock_count"] == 0
        assert first["total_value"] == 7610.00

        assert second["store_name"] == "Mall Road"
        assert second["total_product_rows"] == 2
        assert second["products_with_stock"] == 1
        assert second["low_stock_count"] == 1
        assert second["out_of_stock_count"] == 1
        assert second["total_value"] == 354.00

    def test_threshold_override(self, db_session, store, product):
        set_quantity(db_session, product, store, 7)

        assert inventory_summary()["low_stock_count"] == 0
        assert inventory_summary(low_stock_threshold=10)["low_stock_count"] == 1

    def test_store_without_rows_is_listed(self, db_session, store):
        summary = inventory_summary()

        assert summary["total_stores"] == 1
        assert summary["by_store"][0]["total_quantity"] == 0
        assert summary["total_inventory_value"] == 0.0

    def test_inactive_rows_excluded(self, db_session, store, product):
        set_quantity(db_session, product, store, 4)
        closed = Store(name="Closed", is_active=False)
        hidden = Product(sku="OLD-1", name="Discontinued", price=Decimal("10"), tax_rate=Decimal("0"), is_active=False)
        db_session.add_all([closed, hidden])
        db_session.commit()
        set_quantity(db_session, hidden, store, 50)
        set_quantity(db_session, product, closed, 50)

        summary = inventory_summary()

        assert summary["total_stores"] == 1
        assert summary["total_products"] == 1
        assert summary["grand_total_quantity"] == 4
