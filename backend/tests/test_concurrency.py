"""
Concurrency tests against a file-backed SQLite database.

Each worker runs in its own thread with its own app context and session,
so writers really contend for the database.

Verifies:
- Concurrent reserves never oversell the last unit
- Concurrent sales at one store get distinct invoice numbers
"""

import threading
from decimal import Decimal

import pytest

from voyapos import create_app
from voyapos.extensions import db
from voyapos.models import Inventory, Product, Sale, Store
from voyapos.services import sales_service
from voyapos.services.concurrency import run_in_transaction
from voyapos.services.errors import InsufficientStock
from voyapos.services.inventory_service import check_and_reserve, get_quantity


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.db'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'timeout': 30}},
        'SYNC_ON_LOGIN': False,
        'SYNC_SCHEDULE_MINUTES': 0,
    })
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _seed(app, quantity):
    with app.app_context():
        store = Store(name="Concurrency Store", external_location_id="2001", is_active=True)
        product = Product(
            sku="CONCUR-1",
            name="Concurrent Frame",
            category="frame",
            price=Decimal("118.00"),
            tax_rate=Decimal("18"),
            is_active=True,
        )
        db.session.add_all([store, product])
        db.session.flush()
        db.session.add(Inventory(product_id=product.id, store_id=store.id, quantity=quantity))
        db.session.commit()
        return store.id, product.id


def _run_threads(count, target):
    threads = [threading.Thread(target=target, args=(n,)) for n in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)


def test_concurrent_reserve_never_oversells(file_app):
    store_id, product_id = _seed(file_app, quantity=1)
    results = []
    lock = threading.Lock()

    def worker(_):
        with file_app.app_context():
            try:
                product = db.session.get(Product, product_id)
                run_in_transaction(lambda: check_and_reserve(product, store_id, 1))
                outcome = "reserved"
            except InsufficientStock:
                outcome = "insufficient"
            except Exception as exc:
                outcome = exc
            finally:
                db.session.remove()
            with lock:
                results.append(outcome)

    _run_threads(8, worker)

    assert results.count("reserved") == 1
    assert results.count("insufficient") == 7
    with file_app.app_context():
        assert get_quantity(product_id, store_id) == 0


def test_concurrent_sales_get_distinct_invoice_numbers(file_app):
    store_id, product_id = _seed(file_app, quantity=10)
    created = []
    errors = []
    lock = threading.Lock()

    def worker(n):
        with file_app.app_context():
            try:
                sale = sales_service.create_sale(
                    store_id=store_id,
                    items=[{"product_id": product_id, "quantity": 1}],
                    customer_info={"phone": f"90000000{n:02d}", "name": f"Customer {n}"},
                    payment_method="cash",
                )
                with lock:
                    created.append(sale.invoice_number)
            except Exception as exc:
                with lock:
                    errors.append(exc)
            finally:
                db.session.remove()

    _run_threads(10, worker)

    assert errors == []
    assert len(created) == 10
    assert len(set(created)) == 10
    assert sorted(created) == [f"CONCVOYA{n:04d}" for n in range(1, 11)]
    with file_app.app_context():
        assert db.session.query(Sale).count() == 10
        assert get_quantity(product_id, store_id) == 0
