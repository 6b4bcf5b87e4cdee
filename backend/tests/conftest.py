"""
Pytest fixtures for PharmaPOS backend tests.

Provides test database setup, operators of each role, catalog and sale
factories, and a test client.
"""

from datetime import timedelta

import pytest
from pharmapos import create_app
from pharmapos.extensions import db
from pharmapos.services import cart_service, catalog_service, operator_service, sale_service, shift_service
from pharmapos.time_utils import utcnow


TERMINAL = "T1"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TERMINAL_CODE': TERMINAL,
        'CONCURRENCY_RETRY_ATTEMPTS': 1,
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
        db.session.rollback()
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        db.session.expunge_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()


# =============================================================================
# OPERATORS
# =============================================================================

@pytest.fixture(scope='function')
def make_operator(db_session):
    def _make(role: str, name: str | None = None):
        return operator_service.create_operator(name or f"{role.title()} Operator", role)
    return _make


@pytest.fixture(scope='function')
def owner(make_operator):
    return make_operator("owner")


@pytest.fixture(scope='function')
def pharmacist(make_operator):
    return make_operator("pharmacist")


@pytest.fixture(scope='function')
def cashier(make_operator):
    return make_operator("cashier")


@pytest.fixture(scope='function')
def headers():
    """Helper to identify the acting operator on a request."""
    def _headers(operator, terminal: str = TERMINAL) -> dict:
        return {'X-Operator-Id': str(operator.id), 'X-Terminal-Code': terminal}
    return _headers


# =============================================================================
# CATALOG / SHIFT / SALE FACTORIES
# =============================================================================

@pytest.fixture(scope='function')
def make_batch(db_session):
    """Create a batch; defaults describe a single-unit pack priced 20.00."""
    def _make(product_name: str = "Panadol 500mg", *, stock=10, price="20.00",
              expiry_days: int = 180, units_per_pack: int = 1, max_discount_percent=10):
        return catalog_service.create_batch(
            product_name,
            stock=stock,
            price=price,
            expiry_date=utcnow().date() + timedelta(days=expiry_days),
            units_per_pack=units_per_pack,
            max_discount_percent=max_discount_percent,
        )
    return _make


@pytest.fixture(scope='function')
def open_shift(db_session, owner):
    """An open shift on the test terminal with 100.00 opening cash."""
    return shift_service.open_shift(TERMINAL, owner.id, "100.00")


@pytest.fixture(scope='function')
def cart(db_session, owner):
    return cart_service.create_cart(terminal_code=TERMINAL, operator_id=owner.id)


@pytest.fixture(scope='function')
def make_sale(db_session, owner):
    """
    Ring up and check out a sale.

    lines: iterable of (batch, quantity) or (batch, quantity, is_unit_mode)
    or (batch, quantity, is_unit_mode, line_discount_percent)
    """
    def _make(lines, *, global_discount=0, payment_method="cash", terminal: str | None = TERMINAL,
              operator=None):
        operator = operator or owner
        new_cart = cart_service.create_cart(terminal_code=terminal, operator_id=operator.id)
        for entry in lines:
            batch, quantity = entry[0], entry[1]
            is_unit_mode = entry[2] if len(entry) > 2 else False
            discount = entry[3] if len(entry) > 3 else 0
            assert cart_service.add_line(new_cart, batch, is_unit_mode) is not None
            if quantity != 1:
                assert cart_service.set_quantity(new_cart, batch.id, quantity, is_unit_mode)
            if discount:
                cart_service.set_line_discount(new_cart, batch.id, discount, is_unit_mode)
        if global_discount:
            cart_service.set_global_discount(new_cart, global_discount)
        return sale_service.finalize(
            new_cart.id, payment_method, operator_id=operator.id, terminal_code=terminal
        )
    return _make
