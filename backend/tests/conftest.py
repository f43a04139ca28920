"""
Pytest fixtures for the hospitality backend tests.

Provides test database setup, tenant fixtures, order factories and test client.
"""

import pytest
from hospitality import create_app
from hospitality.extensions import db
from hospitality.models import Establishment
from hospitality.services import order_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RETRY_BACKOFF_BASE': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def establishment_a(db_session):
    """Create Establishment A (first tenant)."""
    est = Establishment(name="Chez A", establishment_type="restaurant", timezone="UTC", is_active=True)
    db_session.add(est)
    db_session.commit()
    return est


@pytest.fixture(scope='function')
def establishment_b(db_session):
    """Create Establishment B (second tenant)."""
    est = Establishment(name="Hotel B", establishment_type="hotel", timezone="Africa/Kigali", is_active=True)
    db_session.add(est)
    db_session.commit()
    return est


@pytest.fixture(scope='function')
def make_order(db_session):
    """Factory: place an order through the order service."""
    def _make(establishment_id, total=15000, customer_name="Alice", phone="0780000000"):
        return order_service.create_order(
            establishment_id=establishment_id,
            customer_name=customer_name,
            phone=phone,
            items=[{"name": "Brochette", "price": total, "quantity": 1}],
        )
    return _make


@pytest.fixture(scope='function')
def counters(db_session):
    """Read (total_revenue, total_orders) straight from the database."""
    def _read(establishment_id: int) -> tuple[int, int]:
        row = db_session.query(
            Establishment.sales_total_revenue, Establishment.sales_total_orders
        ).filter_by(id=establishment_id).one()
        return row.sales_total_revenue, row.sales_total_orders
    return _read
