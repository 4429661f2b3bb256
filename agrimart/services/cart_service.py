from agrimart.extensions import db
from agrimart.errors import NotFoundError, ValidationError
from agrimart.models import CartItem, Product, ProductStatus, ProductVariant
from decimal import Decimal
import logging

logger = logging.getLogger(__name__)


def _line_query(user_id, product_id, variant_id=None):
    q = CartItem.query.filter_by(user_id=user_id, product_id=product_id)
    if variant_id is None:
        return q.filter(CartItem.variant_id.is_(None))
    return q.filter(CartItem.variant_id == variant_id)


def cart_items(user_id):
    return CartItem.query.filter_by(user_id=user_id).order_by(
        CartItem.created_at.desc(), CartItem.id.desc()).all()


def serialize_item(item: CartItem) -> dict:
    product = item.product
    return {
        'id': item.id,
        'product_id': item.product_id,
        'variant_id': item.variant_id,
        'variant_label': item.variant.label if item.variant else None,
        'quantity': item.quantity,
        'name': product.name,
        'name_ta': product.name_ta,
        'image': product.image,
        'cost_per_unit': float(item.unit_price),
    }


def add_to_cart(user_id, product_id, quantity=1, variant_id=None) -> CartItem:
    """Add a product to the cart; an existing line is incremented."""
    if quantity <= 0:
        raise ValidationError('Quantity must be greater than 0')

    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError('Product not found')
    if product.status != ProductStatus.APPROVED:
        raise ValidationError('Product is not available')

    if variant_id is not None:
        variant = db.session.get(ProductVariant, variant_id)
        if not variant or variant.product_id != product.id:
            raise ValidationError('Variant does not belong to product')
    elif ProductVariant.query.filter_by(product_id=product.id).count():
        raise ValidationError('Choose a variant for this product')

    item = _line_query(user_id, product_id, variant_id).first()
    if item:
        item.quantity = item.quantity + quantity
    else:
        item = CartItem(
            user_id=user_id,
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity,
        )
        db.session.add(item)

    db.session.commit()
    return item


def set_quantity(user_id, product_id, quantity, variant_id=None):
    """Set a line's quantity; zero or less removes the line."""
    item = _line_query(user_id, product_id, variant_id).first()
    if not item:
        raise NotFoundError('Cart item not found')

    if quantity <= 0:
        db.session.delete(item)
        item = None
    else:
        item.quantity = quantity
    db.session.commit()
    return item


def remove_from_cart(user_id, product_id, variant_id=None) -> None:
    _line_query(user_id, product_id, variant_id).delete(
        synchronize_session=False)
    db.session.commit()


def clear_cart(user_id) -> None:
    CartItem.query.filter_by(user_id=user_id).delete(
        synchronize_session=False)
    db.session.commit()


def cart_total(user_id) -> Decimal:
    return sum(
        (Decimal(item.unit_price) * item.quantity
         for item in cart_items(user_id)),
        Decimal('0'),
    )
