# Overview: Pytest coverage for concurrent checkouts against a shared database file.

"""
Concurrency Tests

Threads share one file-backed SQLite database (an in-memory database would
serialize everything on one connection and prove nothing). Each worker runs
in its own app context, hence its own SQLAlchemy session and connection.
"""

import threading

import pytest

from storetrack import create_app
from storetrack.extensions import db
from storetrack.models import Store, User, Product, Sale
from storetrack.services import checkout_service
from storetrack.services.checkout_service import InsufficientStockError
from storetrack.services.session_service import AuthContext

from conftest import TEST_CONFIG


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        **TEST_CONFIG,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.sqlite3'}",
        'CHECKOUT_RETRY_ATTEMPTS': 5,
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def seeded(file_app):
    with file_app.app_context():
        store = Store(name="Concurrency Store")
        db.session.add(store)
        db.session.commit()

        owner = User(
            store_id=store.id,
            name="Concurrent Owner",
            email="concurrent@example.com",
            password_hash="dummy",
            role="admin",
        )
        first = Product(store_id=store.id, name="Limited", price_cents=1000, quantity=5)
        second = Product(store_id=store.id, name="Also Limited", price_cents=250, quantity=3)
        db.session.add_all([owner, first, second])
        db.session.commit()

        auth = AuthContext(
            principal_type="user",
            principal_id=owner.id,
            store_id=store.id,
            name=owner.name,
            role=owner.role,
        )
        return auth, first.id, second.id


def _run_workers(app, count, work):
    """Start ``count`` threads together; collect 'ok' / 'stock' / repr(error) outcomes."""
    outcomes = []
    lock = threading.Lock()
    barrier = threading.Barrier(count)

    def worker():
        barrier.wait()
        with app.app_context():
            try:
                work()
                outcome = "ok"
            except InsufficientStockError:
                outcome = "stock"
            except Exception as exc:  # surfaced through the assertion below
                outcome = repr(exc)
            finally:
                db.session.remove()
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return outcomes


def test_no_oversell_under_contention(file_app, seeded):
    auth, product_id, _ = seeded

    outcomes = _run_workers(
        file_app, 8, lambda: checkout_service.record_single_sale(auth, product_id, 1)
    )

    assert sorted(outcomes) == ["ok"] * 5 + ["stock"] * 3
    with file_app.app_context():
        assert db.session.get(Product, product_id).quantity == 0
        assert db.session.query(Sale).count() == 5


def test_concurrent_multi_line_checkouts_stay_atomic(file_app, seeded):
    auth, first_id, second_id = seeded
    items = [{"product": first_id, "quantity": 1}, {"product": second_id, "quantity": 1}]

    outcomes = _run_workers(file_app, 5, lambda: checkout_service.checkout(auth, items))

    assert sorted(outcomes) == ["ok"] * 3 + ["stock"] * 2
    with file_app.app_context():
        assert db.session.get(Product, first_id).quantity == 2
        assert db.session.get(Product, second_id).quantity == 0
        # Failed checkouts left no partial rows behind
        assert db.session.query(Sale).count() == 6
        assert db.session.query(Sale.transaction_id).distinct().count() == 3
