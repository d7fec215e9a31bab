"""
Pytest fixtures for Shipdesk backend tests.

Provides an in-memory database, users per role with session tokens, a small
catalog (product with variants, supplier, courier partners) and an order
factory.
"""

import itertools
from decimal import Decimal

import pytest
from shipdesk import create_app
from shipdesk.extensions import db
from shipdesk.models import (
    CourierPartner,
    Order,
    OrderItem,
    OrderStatusHistory,
    Product,
    ProductVariant,
    Role,
    Supplier,
    User,
)
from shipdesk.services.auth_service import hash_password, create_default_roles
from shipdesk.services import session_service


TEST_PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(TEST_PASSWORD)


@pytest.fixture(scope='function')
def setup_roles(db_session):
    """Setup default roles and permissions."""
    create_default_roles()


@pytest.fixture(scope='function')
def make_user(db_session, setup_roles, password_hash):
    def _make(email: str, role_name: str | None, *, is_super_admin: bool = False, name: str | None = None) -> User:
        role = db_session.query(Role).filter_by(name=role_name).first() if role_name else None
        user = User(
            email=email,
            name=name or email.split("@")[0].title(),
            password_hash=password_hash,
            role_id=role.id if role else None,
            is_super_admin=is_super_admin,
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture(scope='function')
def admin_user(make_user):
    return make_user("admin@shipdesk.test", "admin")


@pytest.fixture(scope='function')
def warehouse_user(make_user):
    return make_user("warehouse@shipdesk.test", "warehouse")


@pytest.fixture(scope='function')
def support_user(make_user):
    return make_user("support@shipdesk.test", "support")


@pytest.fixture(scope='function')
def rider(make_user):
    """Delivery staff member."""
    return make_user("rider@shipdesk.test", "delivery", name="Ravi Rider")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def _headers_for(user: User) -> dict:
    _, token = session_service.create_session(user_id=user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return _headers_for(admin_user)


@pytest.fixture(scope='function')
def warehouse_headers(warehouse_user):
    return _headers_for(warehouse_user)


@pytest.fixture(scope='function')
def support_headers(support_user):
    return _headers_for(support_user)


@pytest.fixture(scope='function')
def rider_headers(rider):
    return _headers_for(rider)


@pytest.fixture(scope='function')
def supplier(db_session):
    s = Supplier(name="Tiruppur Knits", contact_person="Meena")
    db_session.add(s)
    db_session.commit()
    return s


@pytest.fixture(scope='function')
def tshirt(db_session):
    """Product with two variants: TS-RED-M (5 in stock) and TS-BLU-L (20 in stock)."""
    product = Product(name="Classic Tee", category="T-Shirts")
    product.variants.append(ProductVariant(
        sku="TS-RED-M", color="Red", size="M", stock_quantity=5,
        cost_price=Decimal("180.00"), selling_price=Decimal("399.00"),
    ))
    product.variants.append(ProductVariant(
        sku="TS-BLU-L", color="Blue", size="L", stock_quantity=20,
        cost_price=Decimal("180.00"), selling_price=Decimal("399.00"),
    ))
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def red_m(tshirt):
    return next(v for v in tshirt.variants if v.sku == "TS-RED-M")


@pytest.fixture(scope='function')
def blue_l(tshirt):
    return next(v for v in tshirt.variants if v.sku == "TS-BLU-L")


@pytest.fixture(scope='function')
def delhivery(db_session):
    partner = CourierPartner(name="Delhivery", code="DELHIVERY", type="third_party")
    db_session.add(partner)
    db_session.commit()
    return partner


@pytest.fixture(scope='function')
def own_riders(db_session):
    partner = CourierPartner(name="Own Riders", code="INHOUSE", type="in_house")
    db_session.add(partner)
    db_session.commit()
    return partner


@pytest.fixture(scope='function')
def make_order(db_session):
    """
    Insert an order directly in the given status, bypassing the workflow.

    items: list of (sku, quantity) tuples.
    """
    counter = itertools.count(1)

    def _make(
        status: str = "pending",
        items=(("TS-RED-M", 2),),
        *,
        order_number: str | None = None,
        total_amount: str = "750.00",
        payment_method: str = "cod",
    ) -> Order:
        order = Order(
            order_number=order_number or f"ORD-2025-{next(counter):05d}",
            customer_name="Asha Verma",
            customer_phone="9800000001",
            shipping_address="12 MG Road",
            shipping_city="Bengaluru",
            total_amount=Decimal(total_amount),
            payment_method=payment_method,
            status=status,
        )
        for sku, quantity in items:
            order.items.append(OrderItem(
                sku=sku,
                product_name="Classic Tee",
                quantity=quantity,
                price=Decimal("375.00"),
            ))
        db_session.add(order)
        db_session.flush()
        db_session.add(OrderStatusHistory(order_id=order.id, status=status, comment="Order created"))
        db_session.commit()
        return order

    return _make
