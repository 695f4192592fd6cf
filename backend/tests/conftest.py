"""
Pytest fixtures for ShopLedger backend tests.

Provides test database setup, two-owner isolation fixtures, and test client.
"""

import pytest
from shopledger import create_app
from shopledger.extensions import db
from shopledger.models import User, StockRecord
from shopledger.services.products_service import create_product
from shopledger.services.supplier_service import create_supplier


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TX_RETRY_BACKOFF_SECONDS': 0,
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
def owner_a(db_session):
    """Create Owner A (first tenant)."""
    user = User(username="owner_a", email="owner_a@shop-a.test", is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def owner_b(db_session):
    """Create Owner B (second tenant)."""
    user = User(username="owner_b", email="owner_b@shop-b.test", is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def supplier_a(owner_a):
    """Active supplier owned by Owner A."""
    return create_supplier(
        owner_a.id,
        name="Acme Wholesale",
        email="orders@acme.test",
        phone="5550100001",
    )


@pytest.fixture(scope='function')
def product_a(owner_a, supplier_a):
    """Product owned by Owner A with 100 units on hand."""
    product, _ = create_product(
        owner_a.id,
        name="Blue Pen",
        sku="PEN-BLUE",
        purchase_price_cents=900,
        selling_price_cents=2000,
        min_stock_level=10,
        supplier_id=supplier_a.id,
        initial_stock=100,
    )
    return product


@pytest.fixture(scope='function')
def product_a2(owner_a):
    """Second product for Owner A with only 5 units on hand."""
    product, _ = create_product(
        owner_a.id,
        name="Red Pencil",
        sku="PCL-RED",
        selling_price_cents=150,
        initial_stock=5,
    )
    return product


@pytest.fixture(scope='function')
def product_b(owner_b):
    """Product owned by Owner B with 50 units on hand."""
    product, _ = create_product(
        owner_b.id,
        name="Green Marker",
        sku="MRK-GRN",
        selling_price_cents=300,
        initial_stock=50,
    )
    return product


@pytest.fixture(scope='function')
def stock_of(db_session):
    """Helper to read the committed quantity on hand."""
    def _read(product_id: int) -> int:
        db_session.expire_all()
        return db_session.query(StockRecord.current_stock).filter_by(product_id=product_id).scalar()
    return _read


@pytest.fixture(scope='function')
def headers_a(owner_a) -> dict:
    """Identity headers for Owner A."""
    return {'X-User-Id': str(owner_a.id)}


@pytest.fixture(scope='function')
def headers_b(owner_b) -> dict:
    """Identity headers for Owner B."""
    return {'X-User-Id': str(owner_b.id)}
