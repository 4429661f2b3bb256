from decimal import Decimal

import pytest

from agrimart.errors import NotFoundError, ValidationError
from agrimart.models import CartItem, ProductStatus, ProductVariant
from agrimart.roles import Role
from agrimart.services import cart_service


@pytest.fixture
def shopper(ctx, make_user):
    return make_user('9500000001')


def test_adding_twice_increments_one_line(shopper, make_product):
    product = make_product()
    cart_service.add_to_cart(shopper.id, product.id, 2)
    cart_service.add_to_cart(shopper.id, product.id, 3)

    lines = CartItem.query.filter_by(user_id=shopper.id).all()
    assert len(lines) == 1
    assert lines[0].quantity == 5


def test_variants_are_separate_lines(shopper, make_product):
    product = make_product(variants=[('1 kg', 60, 5), ('5 kg', 250, 2)])
    small, big = ProductVariant.query.order_by(ProductVariant.price).all()

    cart_service.add_to_cart(shopper.id, product.id, 1, small.id)
    cart_service.add_to_cart(shopper.id, product.id, 1, big.id)
    cart_service.add_to_cart(shopper.id, product.id, 1, small.id)

    lines = {
        line.variant_id: line.quantity
        for line in cart_service.cart_items(shopper.id)
    }
    assert lines == {small.id: 2, big.id: 1}
    assert cart_service.cart_total(shopper.id) == Decimal('370')


def test_variant_must_belong_to_product(shopper, make_product):
    product = make_product(name='A')
    other = make_product(name='B', variants=[('1 kg', 60, 5)])
    variant = ProductVariant.query.filter_by(product_id=other.id).one()

    with pytest.raises(ValidationError):
        cart_service.add_to_cart(shopper.id, product.id, 1, variant.id)


def test_product_with_variants_needs_a_variant(shopper, make_product):
    product = make_product(variants=[('1 kg', 60, 5)])

    with pytest.raises(ValidationError):
        cart_service.add_to_cart(shopper.id, product.id, 1)
    assert CartItem.query.count() == 0


def test_only_approved_products_can_be_added(shopper, make_product):
    pending = make_product(status=ProductStatus.PENDING)
    with pytest.raises(ValidationError):
        cart_service.add_to_cart(shopper.id, pending.id, 1)
    with pytest.raises(NotFoundError):
        cart_service.add_to_cart(shopper.id, 4040, 1)


def test_set_quantity_zero_removes_line(shopper, make_product):
    product = make_product()
    cart_service.add_to_cart(shopper.id, product.id, 2)

    assert cart_service.set_quantity(shopper.id, product.id, 7).quantity == 7
    assert cart_service.set_quantity(shopper.id, product.id, 0) is None
    assert cart_service.cart_items(shopper.id) == []

    with pytest.raises(NotFoundError):
        cart_service.set_quantity(shopper.id, product.id, 1)


def test_total_and_clear(shopper, make_product):
    seeds = make_product(price=50)
    mulch = make_product(name='Mulch', price=Decimal('12.50'))
    cart_service.add_to_cart(shopper.id, seeds.id, 3)
    cart_service.add_to_cart(shopper.id, mulch.id, 2)

    assert cart_service.cart_total(shopper.id) == Decimal('175.00')

    cart_service.clear_cart(shopper.id)
    assert cart_service.cart_total(shopper.id) == Decimal('0')


def test_cart_endpoints(app, client, auth_headers, make_product):
    with app.app_context():
        product_id = make_product(price=40).id
    headers = auth_headers(Role.USER)

    resp = client.post(
        '/cart/add', json={'product_id': product_id}, headers=headers)
    assert resp.status_code == 201
    assert resp.get_json()['quantity'] == 1

    resp = client.patch(
        '/cart/item',
        json={'product_id': product_id, 'quantity': 4},
        headers=headers,
    )
    assert resp.get_json()['total'] == 160

    assert client.get('/cart/total', headers=headers).get_json() == {
        'total': 160}

    resp = client.delete(
        '/cart/item', json={'product_id': product_id}, headers=headers)
    assert resp.get_json() == {'items': [], 'total': 0}


def test_cart_requires_login(client):
    assert client.get('/cart').status_code == 401
    assert client.post('/cart/add', json={'product_id': 1}).status_code == 401
