"""
Order engine: checkout from the cart, the status workflow and its history.

Statuses move pending -> confirmed/cancelled, confirmed -> processing or
dispatched, processing -> dispatched. Dispatched and cancelled are final.
Whether the server refuses other moves is controlled by the
``ORDER_ENFORCE_TRANSITIONS`` setting.
"""

from agrimart.extensions import db
from agrimart.errors import (
    EmptyCartError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from agrimart.models import (
    CartItem,
    LogisticsCarrier,
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusHistory,
    Product,
    User,
)
from agrimart.services.catalog_service import (
    recompute_product_aggregates,
    variant_count,
)
from agrimart.services.notification_service import (
    notify_order_status,
    tokens_for_user,
)
from agrimart.services.push_service import send_push
from agrimart.utils import build_tracking_url, word_count
from flask import current_app
from datetime import datetime
from decimal import Decimal
import logging

logger = logging.getLogger(__name__)

# Older clients still send these.
LEGACY_STATUSES = {
    'processed': OrderStatus.PROCESSING,
    'shipped': OrderStatus.DISPATCHED,
    'delivered': OrderStatus.DISPATCHED,
}

TRANSITIONS = {
    OrderStatus.PENDING: frozenset(
        {OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset(
        {OrderStatus.PROCESSING, OrderStatus.DISPATCHED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.DISPATCHED}),
    OrderStatus.DISPATCHED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

ORDER_FIELDS = (
    'status_note',
    'delivery_date',
    'logistics_name',
    'tracking_number',
    'tracking_url',
)

MAX_REVIEW_WORDS = 100


def normalize_status(value) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    text = str(value or '').strip().lower()
    if text in LEGACY_STATUSES:
        return LEGACY_STATUSES[text]
    try:
        return OrderStatus(text)
    except ValueError:
        raise ValidationError(f'Invalid order status: {value}') from None


def allowed_transitions(status) -> frozenset:
    return TRANSITIONS[normalize_status(status)]


def can_transition(current, target) -> bool:
    return normalize_status(target) in allowed_transitions(current)


def get_order(order_id) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError('Order not found')
    return order


def get_order_for(user, order_id, manager=False) -> Order:
    """Fetch an order visible to ``user``; managers see every order."""
    order = get_order(order_id)
    if not manager and order.user_id != user.id:
        # Same answer as a missing order so ids cannot be enumerated.
        raise NotFoundError('Order not found')
    return order


def _record_history(order, status, note=None, changed_by=None):
    db.session.add(OrderStatusHistory(
        order_id=order.id,
        status=status,
        note=note,
        changed_by=changed_by,
    ))


def _check_cart_lines(lines):
    """Refuse lines whose stock cannot be decremented consistently.

    A product with variants keeps its stock on the variants, so every line
    for it must name one of them.
    """
    for line in lines:
        if line.variant_id is not None:
            variant = line.variant
            if variant is None or variant.product_id != line.product_id:
                raise ValidationError(
                    f'{line.product.name}: variant is no longer available',
                    payload={'cart_item_id': line.id},
                )
        elif variant_count(line.product_id):
            raise ValidationError(
                f'{line.product.name}: choose a variant',
                payload={'cart_item_id': line.id},
            )


def create_order(user, payment_method, delivery_address=None,
                 note=None) -> Order:
    """Turn the user's cart into an order.

    Prices and names are snapshotted onto the order items, stock is
    decremented and the cart is cleared in a single transaction. Stock is
    not checked and may go negative.
    """
    if not payment_method:
        raise ValidationError('payment_method is required')

    lines = CartItem.query.filter_by(user_id=user.id).order_by(
        CartItem.id).all()
    if not lines:
        raise EmptyCartError()
    _check_cart_lines(lines)

    try:
        total = Decimal('0')
        order = Order(
            user_id=user.id,
            total_amount=0,
            payment_method=payment_method,
            delivery_address=delivery_address or user.delivery_address,
            status=OrderStatus.PENDING,
            status_note=note,
        )
        db.session.add(order)
        db.session.flush()

        touched_products = set()
        for line in lines:
            product = line.product
            variant = line.variant
            price = Decimal(variant.price if variant else
                            product.cost_per_unit)
            total += price * line.quantity

            db.session.add(OrderItem(
                order_id=order.id,
                product_id=product.id,
                variant_id=variant.id if variant else None,
                product_name=product.name,
                variant_label=variant.label if variant else None,
                quantity=line.quantity,
                price_per_unit=price,
            ))

            if variant:
                variant.stock_available = (
                    variant.stock_available - line.quantity)
                touched_products.add(product)
            else:
                product.stock_available = (
                    product.stock_available - line.quantity)

        for product in touched_products:
            recompute_product_aggregates(product)

        order.total_amount = total
        _record_history(order, OrderStatus.PENDING, note, user.id)

        CartItem.query.filter_by(user_id=user.id).delete(
            synchronize_session=False)

        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Order creation failed for user %s", user.id)
        raise

    logger.info(
        "Order %s created for user %s: %s item(s), total=%s",
        order.id,
        user.id,
        len(lines),
        total,
    )
    return order


def update_order_status(actor, order_id, changes: dict) -> Order:
    """Patch an order; only keys present in ``changes`` are written.

    ``status`` is normalized and, when enforcement is on, must be one of
    ``allowed_transitions(current)``. Re-sending the current status only
    patches the other fields. A history row and an owner notification are
    written whenever the status actually changes.
    """
    order = get_order(order_id)
    previous = order.status
    status_changed = False

    if 'status' in changes:
        if changes['status'] is None:
            raise ValidationError('status cannot be null')
        target = normalize_status(changes['status'])
        if target != previous:
            enforce = current_app.config.get(
                'ORDER_ENFORCE_TRANSITIONS', True)
            if enforce and target not in allowed_transitions(previous):
                raise ValidationError(
                    f'Cannot move order from {previous.value} to '
                    f'{target.value}',
                    payload={
                        'allowed': sorted(
                            s.value for s in allowed_transitions(previous)),
                    },
                )
            order.status = target
            status_changed = True

    for key in ORDER_FIELDS:
        if key in changes:
            setattr(order, key, changes[key])

    if (order.logistics_name and order.tracking_number
            and 'tracking_url' not in changes
            and ('tracking_number' in changes
                 or 'logistics_name' in changes)):
        carrier = LogisticsCarrier.query.filter_by(
            name=order.logistics_name).first()
        if carrier and carrier.tracking_url:
            order.tracking_url = build_tracking_url(
                carrier.tracking_url, order.tracking_number)

    order.updated_at = datetime.utcnow()
    if status_changed:
        _record_history(
            order,
            order.status,
            changes.get('status_note'),
            getattr(actor, 'id', None),
        )
        notification = notify_order_status(order)

    db.session.commit()

    if status_changed:
        logger.info(
            "Order %s: %s -> %s by user %s",
            order.id,
            previous.value,
            order.status.value,
            getattr(actor, 'id', None),
        )
        send_push(
            tokens_for_user(order.user_id),
            notification.title,
            notification.message,
        )
    return order


def delete_order(order_id) -> None:
    # Stock is not restored.
    order = get_order(order_id)
    db.session.delete(order)
    db.session.commit()
    logger.info("Order %s deleted", order_id)


def orders_for_user(user_id):
    return Order.query.filter_by(user_id=user_id).order_by(
        Order.created_at.desc(), Order.id.desc()).all()


def all_orders():
    """Every order with the customer's name and number, newest first."""
    rows = db.session.query(Order, User.full_name, User.number).join(
        User, Order.user_id == User.id
    ).order_by(Order.created_at.desc(), Order.id.desc()).all()
    result = []
    for order, full_name, number in rows:
        data = order.to_dict()
        data['customer_name'] = full_name
        data['customer_number'] = number
        result.append(data)
    return result


def order_items(order):
    return order.items.all()


def status_history(order):
    return order.history.order_by(
        OrderStatusHistory.created_at.asc(), OrderStatusHistory.id.asc()
    ).all()


def rate_order_item(user, item_id, rating, review=None) -> OrderItem:
    item = db.session.get(OrderItem, item_id)
    if not item:
        raise NotFoundError('Order item not found')
    if item.order.user_id != user.id:
        raise PermissionDenied('You can only review your own purchases')
    if not 1 <= int(rating) <= 5:
        raise ValidationError('rating must be between 1 and 5')
    if review and word_count(review) > MAX_REVIEW_WORDS:
        raise ValidationError(
            f'review must be at most {MAX_REVIEW_WORDS} words')

    item.rating = int(rating)
    item.review = review or None
    db.session.commit()
    return item


def product_reviews(product_id):
    """Rated order items of a product, newest first."""
    if not db.session.get(Product, product_id):
        raise NotFoundError('Product not found')
    rows = db.session.query(OrderItem, User.full_name).join(
        Order, OrderItem.order_id == Order.id
    ).join(
        User, Order.user_id == User.id
    ).filter(
        OrderItem.product_id == product_id,
        OrderItem.rating.isnot(None),
    ).order_by(OrderItem.created_at.desc(), OrderItem.id.desc()).all()
    return [
        {
            'order_item_id': item.id,
            'rating': item.rating,
            'review': item.review,
            'variant_label': item.variant_label,
            'reviewer': full_name,
            'created_at': item.created_at.isoformat(),
        }
        for item, full_name in rows
    ]
