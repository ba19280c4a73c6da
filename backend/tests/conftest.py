"""
Pytest fixtures for stockroom backend tests.

Provides an in-memory database shared for the session, a per-test wipe,
a small catalog (pcs/box units, one product, a warehouse and a store) and
helpers to seed stock and check ledger reconciliation.
"""

from decimal import Decimal

import pytest
from stockroom import create_app
from stockroom.extensions import db
from stockroom.models import UOM, UOMConversion, Product, Location
from stockroom.services import stock_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOW_STOCK_THRESHOLD': 10,
        'CONCURRENCY_RETRY_ATTEMPTS': 3,
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
    """Fresh data for each test; schema is kept."""
    db.session.rollback()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


@pytest.fixture
def pcs(db_session):
    uom = UOM(name="Piece", abbreviation="pcs")
    db_session.add(uom)
    db_session.commit()
    return uom


@pytest.fixture
def box(db_session):
    uom = UOM(name="Box", abbreviation="box")
    db_session.add(uom)
    db_session.commit()
    return uom


@pytest.fixture
def make_uom(db_session):
    def _make(name: str, abbreviation: str) -> UOM:
        uom = UOM(name=name, abbreviation=abbreviation)
        db_session.add(uom)
        db_session.commit()
        return uom
    return _make


@pytest.fixture
def box_of_12(db_session, box, pcs):
    """Register 1 box = 12 pcs."""
    conv = UOMConversion(from_uom_id=box.id, to_uom_id=pcs.id, rate=12)
    db_session.add(conv)
    db_session.commit()
    return conv


@pytest.fixture
def make_product(db_session, pcs):
    def _make(name: str = "Widget", *, price_cents: int = 1000, uom_id="base") -> Product:
        product = Product(
            name=name,
            price_cents=price_cents,
            uom_id=pcs.id if uom_id == "base" else uom_id,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture
def product(make_product):
    """Product tracked in pcs, 10.00 each."""
    return make_product("Widget")


@pytest.fixture
def warehouse(db_session):
    loc = Location(name="Main Warehouse", type="warehouse")
    db_session.add(loc)
    db_session.commit()
    return loc


@pytest.fixture
def store(db_session):
    loc = Location(name="Front Store", type="store")
    db_session.add(loc)
    db_session.commit()
    return loc


@pytest.fixture
def seed_stock(db_session):
    """Put opening stock on the books through the ledger primitive."""
    def _seed(product_id: int, location_id: int, quantity) -> None:
        stock_service.apply_delta(
            product_id,
            location_id,
            Decimal(str(quantity)),
            "adjustment",
            notes="Opening stock",
        )
        db_session.commit()
    return _seed


@pytest.fixture
def stock_of():
    def _stock(product_id: int, location_id: int) -> Decimal:
        return stock_service.get_quantity(product_id, location_id)
    return _stock


@pytest.fixture
def assert_reconciled():
    """Every level must equal the sum of its movements."""
    def _check() -> None:
        assert stock_service.reconcile() == []
    return _check
