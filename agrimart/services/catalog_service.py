from agrimart.extensions import db
from agrimart.errors import NotFoundError, PermissionDenied, ValidationError
from agrimart.models import (
    CartItem,
    OrderItem,
    Product,
    ProductStatus,
    ProductVariant,
)
from agrimart.roles import Role, can_edit_product
from datetime import datetime
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
import logging

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = (
    'name',
    'name_ta',
    'plant_used',
    'plant_used_ta',
    'keywords',
    'details',
    'details_ta',
    'seller_name',
    'image',
    'unit',
    'stock_available',
    'cost_per_unit',
)
# Cached from the variant set when the product has variants.
AGGREGATE_FIELDS = ('stock_available', 'cost_per_unit')


def get_product(product_id) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError('Product not found')
    return product


def get_variant(variant_id) -> ProductVariant:
    variant = db.session.get(ProductVariant, variant_id)
    if not variant:
        raise NotFoundError('Variant not found')
    return variant


def has_order_history(product_id) -> bool:
    return db.session.query(
        OrderItem.query.filter_by(product_id=product_id).exists()
    ).scalar()


def variant_count(product_id) -> int:
    return ProductVariant.query.filter_by(product_id=product_id).count()


def recompute_product_aggregates(product: Product) -> None:
    """Refresh the cached stock/price on a product from its variants.

    stock_available = sum of variant stock, cost_per_unit = cheapest variant.
    With no variants left the cached values are left as they are. Runs inside
    the caller's transaction; the query autoflushes pending variant changes.
    """
    count, total_stock, min_price = db.session.query(
        func.count(ProductVariant.id),
        func.coalesce(func.sum(ProductVariant.stock_available), 0),
        func.min(ProductVariant.price),
    ).filter(ProductVariant.product_id == product.id).one()

    if not count:
        return

    product.stock_available = int(total_stock)
    product.cost_per_unit = min_price
    product.updated_at = datetime.utcnow()


def _ensure_can_edit(actor, product):
    if not can_edit_product(actor.role, actor.id, product):
        logger.warning(
            "User %s tried to modify product %s owned by %s",
            actor.id,
            product.id,
            product.created_by,
        )
        raise PermissionDenied('You can only modify your own products')


def create_product(actor, data: dict, variants=None) -> Product:
    """Create a product; Vendor submissions wait for Master review."""
    status = (
        ProductStatus.APPROVED
        if actor.role == Role.MASTER
        else ProductStatus.PENDING
    )
    product = Product(
        status=status,
        created_by=actor.id,
        **{k: v for k, v in data.items() if k in PRODUCT_FIELDS},
    )
    if product.keywords is None:
        product.keywords = ''

    try:
        db.session.add(product)
        db.session.flush()

        for v in variants or ():
            db.session.add(ProductVariant(
                product_id=product.id,
                label=v['label'],
                price=v['price'],
                stock_available=v.get('stock_available', 0),
            ))
        if variants:
            recompute_product_aggregates(product)

        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError('Duplicate variant label') from None

    logger.info(
        "Product %s created by user %s (status=%s, variants=%s)",
        product.id,
        actor.id,
        status.value,
        len(variants or ()),
    )
    return product


def update_product(actor, product_id, changes: dict) -> Product:
    product = get_product(product_id)
    _ensure_can_edit(actor, product)

    has_variants = variant_count(product.id) > 0
    for key, value in changes.items():
        if key not in PRODUCT_FIELDS:
            continue
        if has_variants and key in AGGREGATE_FIELDS:
            # Derived from the variants; direct edits would desync the cache.
            continue
        if key == 'name' and not value:
            raise ValidationError('name cannot be empty')
        if key == 'keywords' and value is None:
            value = ''
        setattr(product, key, value)

    if has_variants:
        recompute_product_aggregates(product)
    product.updated_at = datetime.utcnow()
    db.session.commit()
    return product


def delete_product(actor, product_id) -> None:
    product = get_product(product_id)
    if actor.role != Role.MASTER:
        raise PermissionDenied('Only a master can delete products')
    if has_order_history(product.id):
        raise ValidationError('cannot delete product with order history')
    db.session.delete(product)
    db.session.commit()
    logger.info("Product %s deleted by user %s", product_id, actor.id)


def review_product(actor, product_id, status: str, note=None) -> bool:
    """Approve/reject a product. Returns True if the product was removed.

    A rejected product that never appeared in an order is deleted outright.
    """
    product = get_product(product_id)
    product.status = ProductStatus(status)
    product.review_note = note
    product.reviewed_by = actor.id
    product.reviewed_at = datetime.utcnow()

    deleted = False
    if product.status == ProductStatus.REJECTED and not has_order_history(
            product.id):
        db.session.delete(product)
        deleted = True

    db.session.commit()
    return deleted


def add_variant(actor, product_id, label, price, stock_available=0):
    """Add a variant, or update the existing one with the same label."""
    product = get_product(product_id)
    _ensure_can_edit(actor, product)

    variant = ProductVariant.query.filter_by(
        product_id=product.id, label=label).first()
    if variant:
        variant.price = price
        variant.stock_available = stock_available
    else:
        variant = ProductVariant(
            product_id=product.id,
            label=label,
            price=price,
            stock_available=stock_available,
        )
        db.session.add(variant)

    recompute_product_aggregates(product)
    db.session.commit()
    return variant


def update_variant(actor, variant_id, changes: dict):
    variant = get_variant(variant_id)
    product = variant.product
    _ensure_can_edit(actor, product)

    for key in ('label', 'price', 'stock_available'):
        if key in changes and changes[key] is not None:
            setattr(variant, key, changes[key])

    try:
        recompute_product_aggregates(product)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError('Duplicate variant label') from None
    return variant


def delete_variant(actor, variant_id) -> None:
    variant = get_variant(variant_id)
    product = variant.product
    _ensure_can_edit(actor, product)

    # Cart lines for a removed variant could no longer be checked out.
    CartItem.query.filter_by(variant_id=variant.id).delete(
        synchronize_session=False)
    db.session.delete(variant)
    recompute_product_aggregates(product)
    db.session.commit()


def cheapest_variants(product_ids):
    """Map product id -> (min price, label) of its cheapest variant."""
    if not product_ids:
        return {}
    rows = ProductVariant.query.filter(
        ProductVariant.product_id.in_(product_ids)
    ).order_by(ProductVariant.product_id, ProductVariant.price,
               ProductVariant.id).all()
    cheapest = {}
    for v in rows:
        cheapest.setdefault(v.product_id, (float(v.price), v.label))
    return cheapest


def serialize_products(products):
    cheapest = cheapest_variants([p.id for p in products])
    items = []
    for p in products:
        data = p.to_dict()
        min_price, min_label = cheapest.get(p.id, (None, None))
        data['min_price'] = min_price
        data['min_label'] = min_label
        items.append(data)
    return items
