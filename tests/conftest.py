import pytest

from agrimart import create_app
from agrimart.config import Config
from agrimart.extensions import db
from agrimart.models import (
    CartItem,
    Product,
    ProductStatus,
    ProductVariant,
    User,
)
from agrimart.roles import Role
from agrimart.services.catalog_service import recompute_product_aggregates
from agrimart.services.token_service import issue_tokens


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    LOG_FILE = None
    PUSH_ENABLED = False
    ORDER_ENFORCE_TRANSITIONS = True
    PLANT_ANALYSIS_API_KEY = 'test-key'
    PLANT_ANALYSIS_URL = 'https://plant-analysis.test/generate'
    PLANT_ANALYSIS_BACKOFF = 0


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    """Hold an app context for service-level tests (no HTTP client)."""
    with app.app_context():
        yield app
        db.session.remove()


def create_user(number, role=Role.USER, full_name=None):
    user = User(
        number=number,
        full_name=full_name or f'User {number}',
        role=int(role),
    )
    user.set_password('secret')
    db.session.add(user)
    db.session.commit()
    return user


def create_product(name='Tomato Seeds', price=50, stock=10, status=None,
                   created_by=None, variants=None, **fields):
    product = Product(
        name=name,
        cost_per_unit=price,
        stock_available=stock,
        status=status or ProductStatus.APPROVED,
        created_by=created_by,
        keywords=fields.pop('keywords', ''),
        **fields,
    )
    db.session.add(product)
    db.session.flush()
    for label, v_price, v_stock in variants or ():
        db.session.add(ProductVariant(
            product_id=product.id,
            label=label,
            price=v_price,
            stock_available=v_stock,
        ))
    if variants:
        recompute_product_aggregates(product)
    db.session.commit()
    return product


def add_cart_line(user_id, product_id, quantity, variant_id=None):
    db.session.add(CartItem(
        user_id=user_id,
        product_id=product_id,
        variant_id=variant_id,
        quantity=quantity,
    ))
    db.session.commit()


@pytest.fixture
def make_user():
    return create_user


@pytest.fixture
def make_product():
    return create_product


@pytest.fixture
def users(app):
    """One account per role, as ids keyed by Role."""
    with app.app_context():
        return {
            role: create_user(f'900000000{int(role)}', role).id
            for role in Role
        }


@pytest.fixture
def auth_headers(app, users):

    def _headers(role_or_id=Role.USER):
        user_id = (
            users[role_or_id] if isinstance(role_or_id, Role)
            else role_or_id
        )
        with app.app_context():
            token = issue_tokens(db.session.get(User, user_id))
        return {'Authorization': f"Bearer {token['access_token']}"}

    return _headers
