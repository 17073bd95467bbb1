"""
Sale transaction tests.

Verifies:
- A sale reserves stock, snapshots prices and allocates an invoice number
- Any failure leaves stock, customers and sales unchanged
- Edit and delete restore stock and are admin-only
- Customer records are upserted by phone
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from voyapos.models import Customer, Sale, SaleItem
from voyapos.services import sales_service
from voyapos.services.errors import (
    InsufficientStock,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from voyapos.services.inventory_service import get_quantity
from voyapos.time_utils import parse_filter_bound, utcnow

from conftest import set_quantity

CUSTOMER = {"phone": "9876543210", "name": "Asha Rao", "email": "asha@example.com"}


def _sell(store, items, customer=None, payment_method="cash", cashier_id=None):
    return sales_service.create_sale(
        store_id=store.id,
        items=items,
        customer_info=customer or dict(CUSTOMER),
        payment_method=payment_method,
        cashier_id=cashier_id,
    )


class TestCreateSale:

    def test_single_item_totals(self, db_session, stocked, product):
        sale = _sell(stocked, [{"product_id": product.id, "quantity": 1}])

        assert sale.invoice_number == "MALLVOYA0001"
        assert sale.total_amount == Decimal("118.00")
        assert sale.subtotal == Decimal("118.00")
        assert sale.total_discount == Decimal("0")
        data = sale.to_dict()
        assert data["total_tax"] == 18.00
        assert data["items"][0]["base_amount"] == 100.00
        assert data["items"][0]["line_total"] == 118.00

    def test_reserves_stock(self, db_session, stocked, product):
        _sell(stocked, [{"product_id": product.id, "quantity": 3}])

        assert get_quantity(product.id, stocked.id) == 2

    def test_totals_are_sum_of_lines(self, db_session, stocked, product, second_product):
        sale = _sell(stocked, [
            {"product_id": product.id, "quantity": 2, "discount": "18.00"},
            {"product_id": second_product.id, "quantity": 1},
        ])

        items = sale.items
        assert len(items) == 2
        assert sale.total_amount == sum(Decimal(i.line_total) for i in items)
        assert sale.total_amount == sale.subtotal - sale.total_discount
        assert sale.total_amount == Decimal("1250.00")
        assert sale.total_discount == Decimal("36.00")

    def test_sub_cent_discount_rejected(self, db_session, stocked, product, second_product):
        with pytest.raises(ValidationError) as exc_info:
            _sell(stocked, [
                {"product_id": product.id, "quantity": 1, "discount": "0.996"},
                {"product_id": second_product.id, "quantity": 1, "discount": "0.996"},
            ])

        assert exc_info.value.details["index"] == 0
        assert get_quantity(product.id, stocked.id) == 5
        assert db_session.query(Sale).count() == 0

    def test_stored_total_matches_stored_lines(self, db_session, stocked, product, second_product):
        sale = _sell(stocked, [
            {"product_id": product.id, "quantity": 1, "discount": "0.99"},
            {"product_id": second_product.id, "quantity": 1, "discount": "1.500"},
        ])
        sale_id = sale.id
        db_session.expire_all()

        reloaded = db_session.get(Sale, sale_id)
        line_totals = [Decimal(i.line_total) for i in reloaded.items]
        assert line_totals == [Decimal("117.01"), Decimal("1048.50")]
        assert Decimal(reloaded.total_amount) == sum(line_totals)

    def test_items_snapshot_product(self, db_session, stocked, product):
        sale = _sell(stocked, [{"product_id": product.id, "quantity": 1}])

        product.price = Decimal("999.00")
        product.name = "Renamed"
        db_session.commit()

        item = db_session.get(Sale, sale.id).items[0]
        assert item.unit_price == Decimal("118.00")
        assert item.name == "Aviator Frame"
        assert item.sku == "FR-001"

    def test_insufficient_stock_changes_nothing(self, db_session, stocked, product):
        with pytest.raises(InsufficientStock):
            _sell(stocked, [{"product_id": product.id, "quantity": 6}])

        assert get_quantity(product.id, stocked.id) == 5
        assert db_session.query(Sale).count() == 0
        assert db_session.query(Customer).count() == 0

    def test_later_item_failure_rolls_back_earlier_items(self, db_session, stocked, product, second_product):
        with pytest.raises(InsufficientStock) as exc_info:
            _sell(stocked, [
                {"product_id": second_product.id, "quantity": 4},
                {"product_id": product.id, "quantity": 50},
            ])

        assert exc_info.value.product_id == product.id
        assert get_quantity(second_product.id, stocked.id) == 10
        assert get_quantity(product.id, stocked.id) == 5
        assert db_session.query(SaleItem).count() == 0

    def test_unknown_product(self, db_session, stocked):
        with pytest.raises(NotFound):
            _sell(stocked, [{"product_id": 4242, "quantity": 1}])

    def test_inactive_product(self, db_session, stocked, product):
        product.is_active = False
        db_session.commit()

        with pytest.raises(ValidationError):
            _sell(stocked, [{"product_id": product.id, "quantity": 1}])

        assert get_quantity(product.id, stocked.id) == 5

    def test_unknown_store(self, db_session, product):
        with pytest.raises(NotFound):
            sales_service.create_sale(
                store_id=999,
                items=[{"product_id": product.id, "quantity": 1}],
                customer_info=dict(CUSTOMER),
                payment_method="cash",
            )

    @pytest.mark.parametrize("items", [
        [],
        None,
        [{"product_id": 1, "quantity": 0}],
        [{"product_id": 1, "quantity": -2}],
        [{"product_id": "1", "quantity": 1}],
        [{"product_id": 1, "quantity": 1, "discount": -5}],
    ])
    def test_rejects_malformed_items(self, db_session, stocked, items):
        with pytest.raises(ValidationError):
            _sell(stocked, items)

    def test_requires_customer_phone(self, db_session, stocked, product):
        with pytest.raises(ValidationError):
            _sell(stocked, [{"product_id": product.id, "quantity": 1}], customer={"name": "No Phone"})

    def test_rejects_unknown_payment_method(self, db_session, stocked, product):
        with pytest.raises(ValidationError):
            _sell(stocked, [{"product_id": product.id, "quantity": 1}], payment_method="barter")

    def test_payment_method_is_normalized(self, db_session, stocked, product):
        sale = _sell(stocked, [{"product_id": product.id, "quantity": 1}], payment_method=" UPI ")
        assert sale.payment_method == "upi"

    def test_invoice_numbers_increase(self, db_session, stocked, product):
        first = _sell(stocked, [{"product_id": product.id, "quantity": 1}])
        second = _sell(stocked, [{"product_id": product.id, "quantity": 1}])

        assert first.invoice_number == "MALLVOYA0001"
        assert second.invoice_number == "MALLVOYA0002"


class TestCustomerUpsert:

    def test_creates_customer_with_purchase_total(self, db_session, stocked, product):
        _sell(stocked, [{"product_id": product.id, "quantity": 2}])

        customer = db_session.query(Customer).filter_by(phone=CUSTOMER["phone"]).one()
        assert customer.name == "Asha Rao"
        assert customer.total_purchases == Decimal("236.00")
        assert customer.last_purchase_date is not None

    def test_existing_customer_merges_non_empty_fields(self, db_session, stocked, product):
        _sell(stocked, [{"product_id": product.id, "quantity": 1}])
        _sell(stocked, [{"product_id": product.id, "quantity": 1}], customer={
            "phone": CUSTOMER["phone"],
            "name": "",
            "address": "12 Mall Road",
        })

        customers = db_session.query(Customer).all()
        assert len(customers) == 1
        assert customers[0].name == "Asha Rao"
        assert customers[0].address == "12 Mall Road"
        assert customers[0].total_purchases == Decimal("236.00")


class TestEditSale:

    def test_replaces_items_and_adjusts_stock(self, db_session, stocked, product, second_product, admin_user):
        sale = _sell(stocked, [{"product_id": product.id, "quantity": 3}])
        assert get_quantity(product.id, stocked.id) == 2

        edited = sales_service.edit_sale(sale.id, [
            {"product_id": product.id, "quantity": 2},
            {"product_id": second_product.id, "quantity": 1},
        ], actor=admin_user)

        assert get_quantity(product.id, stocked.id) == 3
        assert get_quantity(second_product.id, stocked.id) == 9
        assert edited.total_amount == Decimal("1286.00")
        assert sorted(i.product_id for i in edited.items) == sorted([product.id, second_product.id])
        assert db_session.query(SaleItem).count() == 2
        assert edited.updated_at is not None

    def test_keeps_invoice_number(self, db_session, stocked, product, admin_user):
        sale = _sell(stocked, [{"product_id": product.id, "quantity": 1}])

        edited = sales_service.edit_sale(sale.id, [{"product_id": product.id, "quantity": 2}], actor=admin_user)

        assert edited.invoice_number == "MALLVOYA0001"

    def test_checked_against_restored_baseline(self, db_session, stocked, product, admin_user):
        sale = _sell(stocked, [{"product_id": product.id, "quantity": 5}])
        assert get_quantity(product.id, stocked.id) == 0

        sales_service.edit_sale(sale.id, [{"product_id": product.id, "quantity": 4}], actor=admin_user)

        assert get_quantity(product.id, stocked.id) == 1

    def test_insufficient_stock_leaves_sale_untouched(self, db_session, stocked, product, admin_user):
        sale = _sell(stocked, [{"product_id": product.id, "quantity": 3}])

        with pytest.raises(InsufficientStock):
            sales_service.edit_sale(sale.id, [{"product_id": product.id, "quantity": 6}], actor=admin_user)

        assert get_quantity(product.id, stocked.id) == 2
        reloaded = db_session.get(Sale, sale.id)
        assert [i.quantity for i in reloaded.items] == [3]
        assert reloaded.total_amount == Decimal("354.00")

    def test_adjusts_customer_total(self, db_session, stocked, product, admin_user):
        sale = _sell(stocked, [{"product_id": product.id, "quantity": 3}])

        sales_service.edit_sale(sale.id, [{"product_id": product.id, "quantity": 1}], actor=admin_user)

        customer = db_session.query(Customer).one()
        assert customer.total_purchases == Decimal("118.00")

    def test_cashier_denied(self, db_session, stocked, product, cashier_user):
        sale = _sell(stocked, [{"product_id": product.id, "quantity": 1}])

        with pytest.raises(PermissionDenied):
            sales_service.edit_sale(sale.id, [{"product_id": product.id, "quantity": 2}], actor=cashier_user)

        assert get_quantity(product.id, stocked.id) == 4

    def test_unknown_sale(self, db_session, admin_user):
        with pytest.raises(NotFound):
            sales_service.edit_sale(999, [{"product_id": 1, "quantity": 1}], actor=admin_user)


class TestDeleteSale:

    def test_restores_stock(self, db_session, stocked, product, admin_user):
        sale = _sell(stocked, [{"product_id": product.id, "quantity": 3}])
        assert get_quantity(product.id, stocked.id) == 2

        result = sales_service.delete_sale(sale.id, actor=admin_user)

        assert result == {"invoice_number": "MALLVOYA0001"}
        assert get_quantity(product.id, stocked.id) == 5
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0

    def test_reverses_customer_total(self, db_session, stocked, product, admin_user):
        sale = _sell(stocked, [{"product_id": product.id, "quantity": 2}])

        sales_service.delete_sale(sale.id, actor=admin_user)

        customer = db_session.query(Customer).one()
        assert customer.total_purchases == Decimal("0")

    def test_cashier_denied(self, db_session, stocked, product, cashier_user):
        sale = _sell(stocked, [{"product_id": product.id, "quantity": 1}])

        with pytest.raises(PermissionDenied):
            sales_service.delete_sale(sale.id, actor=cashier_user)

        assert db_session.query(Sale).count() == 1

    def test_missing_sale(self, db_session, admin_user):
        with pytest.raises(NotFound):
            sales_service.delete_sale(12345, actor=admin_user)


class TestQueries:

    def test_list_filters_by_store(self, db_session, stocked, other_store, product):
        set_quantity(db_session, product, other_store, 5)
        _sell(stocked, [{"product_id": product.id, "quantity": 1}])
        _sell(other_store, [{"product_id": product.id, "quantity": 1}])

        sales = sales_service.list_sales(store_id=other_store.id)

        assert [s.invoice_number for s in sales] == ["AIRPVOYA0001"]

    def test_list_rejects_bad_dates(self, db_session):
        with pytest.raises(ValidationError):
            sales_service.list_sales(start="yesterday")

    def test_date_end_bound_covers_whole_day(self, db_session, stocked, product):
        _sell(stocked, [{"product_id": product.id, "quantity": 1}])
        today = utcnow().date()

        same_day = sales_service.list_sales(start=today.isoformat(), end=today.isoformat())
        before = sales_service.list_sales(end=(today - timedelta(days=1)).isoformat())

        assert len(same_day) == 1
        assert before == []

    def test_offset_bounds_are_converted_to_utc(self):
        assert parse_filter_bound("2026-10-18T05:30:00+05:30") == datetime(2026, 10, 18, 0, 0)
        assert parse_filter_bound("2026-10-18T00:00:00Z") == datetime(2026, 10, 18, 0, 0)
        assert parse_filter_bound("2026-10-18", end=True) == datetime(2026, 10, 18, 23, 59, 59, 999999)
        assert parse_filter_bound("  ") is None

    def test_stats(self, db_session, stocked, product, second_product):
        _sell(stocked, [{"product_id": product.id, "quantity": 1}])
        _sell(stocked, [{"product_id": second_product.id, "quantity": 1, "discount": 50}])

        stats = sales_service.sales_stats(store_id=stocked.id)

        assert stats["total_sales"] == 2
        assert stats["total_revenue"] == 1118.00
        assert stats["total_discount"] == 50.00
        assert stats["avg_sale_amount"] == 559.00

    def test_stats_empty(self, db_session, store):
        stats = sales_service.sales_stats(store_id=store.id)

        assert stats["total_sales"] == 0
        assert stats["total_revenue"] == 0.0

    def test_get_sale_not_found(self, db_session):
        with pytest.raises(NotFound):
            sales_service.get_sale(1)
