from decimal import Decimal

import pytest

from agrimart.errors import (
    EmptyCartError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from agrimart.extensions import db
from agrimart.models import (
    CartItem,
    LogisticsCarrier,
    Notification,
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusHistory,
    Product,
    ProductVariant,
)
from agrimart.roles import Role
from agrimart.services import order_service
from conftest import add_cart_line


@pytest.fixture
def customer(ctx, make_user):
    return make_user('9100000001', Role.USER)


@pytest.fixture
def vendor(ctx, make_user):
    return make_user('9100000002', Role.VENDOR)


def _place_order(customer, make_product, quantity=3, **product_fields):
    product = make_product(**product_fields)
    add_cart_line(customer.id, product.id, quantity)
    return order_service.create_order(customer, 'cod'), product


def test_checkout_snapshots_cart_and_decrements_stock(customer,
                                                      make_product):
    product = make_product(id=7, price=50, stock=10)
    add_cart_line(customer.id, product.id, 3)

    order = order_service.create_order(customer, 'cod')

    assert order.total_amount == Decimal('150')
    assert order.status == OrderStatus.PENDING
    items = order.items.all()
    assert len(items) == 1
    assert items[0].product_id == 7
    assert items[0].quantity == 3
    assert items[0].price_per_unit == Decimal('50')
    assert db.session.get(Product, 7).stock_available == 7
    assert CartItem.query.filter_by(user_id=customer.id).count() == 0


def test_checkout_writes_initial_history_row(customer, make_product):
    order, _ = _place_order(customer, make_product)
    history = order_service.status_history(order)
    assert [h.status for h in history] == [OrderStatus.PENDING]


def test_checkout_with_empty_cart_raises(customer):
    with pytest.raises(EmptyCartError):
        order_service.create_order(customer, 'cod')
    assert Order.query.count() == 0


def test_checkout_is_atomic(customer, make_product, monkeypatch):
    product = make_product(price=50, stock=10)
    add_cart_line(customer.id, product.id, 3)

    def boom(*args, **kwargs):
        raise RuntimeError('disk full')

    monkeypatch.setattr(order_service, '_record_history', boom)

    with pytest.raises(RuntimeError):
        order_service.create_order(customer, 'cod')

    assert Order.query.count() == 0
    assert OrderItem.query.count() == 0
    assert db.session.get(Product, product.id).stock_available == 10
    assert CartItem.query.filter_by(user_id=customer.id).count() == 1


def test_stock_is_not_checked_and_may_go_negative(customer, make_product):
    _, product = _place_order(customer, make_product, quantity=5, stock=2)
    assert db.session.get(Product, product.id).stock_available == -3


def test_order_items_are_not_affected_by_later_product_edits(customer,
                                                              make_product):
    order, product = _place_order(customer, make_product, price=50)

    product.cost_per_unit = 80
    product.name = 'Renamed'
    db.session.commit()

    item = order.items.first()
    db.session.refresh(item)
    assert item.price_per_unit == Decimal('50')
    assert item.product_name == 'Tomato Seeds'
    assert db.session.get(Order, order.id).total_amount == Decimal('150')


def test_variant_lines_use_variant_price_and_stock(customer, make_product):
    product = make_product(
        price=0, stock=0, variants=[('500 g', 40, 10), ('1 kg', 70, 5)])
    big = ProductVariant.query.filter_by(label='1 kg').one()
    add_cart_line(customer.id, product.id, 2, variant_id=big.id)

    order = order_service.create_order(customer, 'upi')

    item = order.items.first()
    assert item.variant_label == '1 kg'
    assert item.price_per_unit == Decimal('70')
    assert order.total_amount == Decimal('140')
    assert db.session.get(ProductVariant, big.id).stock_available == 3
    # Aggregate follows the variants.
    assert db.session.get(Product, product.id).stock_available == 13


def test_variantless_line_for_variant_product_is_refused(customer,
                                                         make_product):
    product = make_product(variants=[('500 g', 40, 10), ('1 kg', 70, 5)])
    add_cart_line(customer.id, product.id, 2)

    with pytest.raises(ValidationError):
        order_service.create_order(customer, 'upi')

    assert Order.query.count() == 0
    assert CartItem.query.filter_by(user_id=customer.id).count() == 1
    product = db.session.get(Product, product.id)
    assert product.stock_available == 15
    assert product.stock_available == sum(
        v.stock_available for v in product.variants)


def test_line_with_missing_variant_is_refused(customer, make_product):
    product = make_product()
    add_cart_line(customer.id, product.id, 1, variant_id=4040)

    with pytest.raises(ValidationError):
        order_service.create_order(customer, 'upi')
    assert Order.query.count() == 0
    assert db.session.get(Product, product.id).stock_available == 10


@pytest.mark.parametrize('current, allowed', [
    ('pending', {'confirmed', 'cancelled'}),
    ('confirmed', {'processing', 'dispatched'}),
    ('processing', {'dispatched'}),
    ('dispatched', set()),
    ('cancelled', set()),
])
def test_allowed_transitions(current, allowed):
    assert {s.value for s in order_service.allowed_transitions(current)} \
        == allowed


@pytest.mark.parametrize('legacy, expected', [
    ('processed', OrderStatus.PROCESSING),
    ('shipped', OrderStatus.DISPATCHED),
    ('Delivered', OrderStatus.DISPATCHED),
    (' Confirmed ', OrderStatus.CONFIRMED),
])
def test_legacy_statuses_are_normalized(legacy, expected):
    assert order_service.normalize_status(legacy) is expected


def test_unknown_status_is_rejected():
    with pytest.raises(ValidationError):
        order_service.normalize_status('teleported')


def test_status_update_follows_transitions(customer, vendor, make_product):
    order, _ = _place_order(customer, make_product)

    with pytest.raises(ValidationError):
        order_service.update_order_status(
            vendor, order.id, {'status': 'dispatched'})

    order_service.update_order_status(
        vendor, order.id, {'status': 'confirmed'})
    order_service.update_order_status(
        vendor, order.id, {'status': 'shipped'})

    assert db.session.get(Order, order.id).status == OrderStatus.DISPATCHED
    history = [h.status for h in order_service.status_history(order)]
    assert history == [
        OrderStatus.PENDING,
        OrderStatus.CONFIRMED,
        OrderStatus.DISPATCHED,
    ]

    with pytest.raises(ValidationError):
        order_service.update_order_status(
            vendor, order.id, {'status': 'pending'})


def test_enforcement_can_be_disabled(ctx, customer, vendor, make_product):
    ctx.config['ORDER_ENFORCE_TRANSITIONS'] = False
    order, _ = _place_order(customer, make_product)

    order_service.update_order_status(
        vendor, order.id, {'status': 'dispatched'})

    assert db.session.get(Order, order.id).status == OrderStatus.DISPATCHED


def test_partial_update_leaves_omitted_fields(customer, vendor,
                                              make_product):
    order, _ = _place_order(customer, make_product)
    order_service.update_order_status(vendor, order.id, {
        'status': 'confirmed',
        'status_note': 'Packed',
        'delivery_date': '2026-11-02',
    })

    order_service.update_order_status(
        vendor, order.id, {'tracking_number': 'TRK1'})

    order = db.session.get(Order, order.id)
    assert order.status_note == 'Packed'
    assert order.delivery_date == '2026-11-02'
    assert order.tracking_number == 'TRK1'

    # An explicit null clears.
    order_service.update_order_status(
        vendor, order.id, {'status_note': None})
    assert db.session.get(Order, order.id).status_note is None


def test_resending_same_status_adds_no_history(customer, vendor,
                                               make_product):
    order, _ = _place_order(customer, make_product)
    order_service.update_order_status(
        vendor, order.id, {'status': 'pending', 'status_note': 'waiting'})

    assert OrderStatusHistory.query.filter_by(order_id=order.id).count() == 1
    assert db.session.get(Order, order.id).status_note == 'waiting'


def test_tracking_url_built_from_carrier_template(customer, vendor,
                                                  make_product):
    db.session.add(LogisticsCarrier(
        name='DTDC', tracking_url='https://dtdc.test/track?awb={tracking}'))
    db.session.commit()
    order, _ = _place_order(customer, make_product)

    order_service.update_order_status(vendor, order.id, {
        'status': 'confirmed',
        'logistics_name': 'DTDC',
        'tracking_number': 'AWB42',
    })

    order = db.session.get(Order, order.id)
    assert order.tracking_url == 'https://dtdc.test/track?awb=AWB42'


def test_status_change_notifies_owner(customer, vendor, make_product):
    order, _ = _place_order(customer, make_product)
    order_service.update_order_status(
        vendor, order.id, {'status': 'confirmed'})

    note = Notification.query.filter_by(user_id=customer.id).one()
    assert 'confirmed' in note.message
    assert note.message_ta


def test_delete_order_does_not_restore_stock(customer, make_product):
    order, product = _place_order(customer, make_product, stock=10)

    order_service.delete_order(order.id)

    assert db.session.get(Order, order.id) is None
    assert OrderItem.query.count() == 0
    assert db.session.get(Product, product.id).stock_available == 7


def test_only_owner_can_see_order(customer, make_user, make_product):
    order, _ = _place_order(customer, make_product)
    stranger = make_user('9100000009')

    with pytest.raises(NotFoundError):
        order_service.get_order_for(stranger, order.id)
    assert order_service.get_order_for(
        stranger, order.id, manager=True).id == order.id


def test_rating_is_owner_only_and_bounded(customer, make_user,
                                          make_product):
    order, product = _place_order(customer, make_product)
    item = order.items.first()

    with pytest.raises(PermissionDenied):
        order_service.rate_order_item(make_user('9100000010'), item.id, 5)
    with pytest.raises(ValidationError):
        order_service.rate_order_item(customer, item.id, 6)
    with pytest.raises(ValidationError):
        order_service.rate_order_item(customer, item.id, 4, 'word ' * 101)

    order_service.rate_order_item(customer, item.id, 4, 'Good seeds')

    reviews = order_service.product_reviews(product.id)
    assert [(r['rating'], r['review']) for r in reviews] == [
        (4, 'Good seeds')]
