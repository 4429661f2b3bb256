from flask import Blueprint, jsonify, request
from flask_login import current_user
from agrimart.errors import NotFoundError
from agrimart.middleware import capability_required
from agrimart.models import Product, ProductStatus
from agrimart.roles import (
    Role,
    can_edit_any_product,
    can_edit_product,
    can_manage_catalog,
)
from agrimart.schemas import (
    ProductCreateRequest,
    ProductReviewRequest,
    ProductUpdateRequest,
    VariantRequest,
    VariantUpdateRequest,
)
from agrimart.services import catalog_service, search_service
from agrimart.services.audit_service import log_audit
from agrimart.utils import parse_body, provided_fields
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('products', __name__)


def _product_detail(product):
    data = catalog_service.serialize_products([product])[0]
    data['variants'] = [v.to_dict() for v in product.variants]
    return data


def _visible(product) -> bool:
    if product.status == ProductStatus.APPROVED:
        return True
    if not current_user.is_authenticated:
        return False
    return can_edit_product(current_user.role, current_user.id, product)


@bp.route('/products', methods=['GET'])
def list_products():
    products = search_service.search_products()
    return jsonify(catalog_service.serialize_products(products))


@bp.route('/products/search', methods=['GET'])
def search_products():
    products = search_service.search_products(request.args.get('q'))
    return jsonify(catalog_service.serialize_products(products))


@bp.route('/products/by-keyword', methods=['GET'])
def products_by_keyword():
    products = search_service.products_by_keyword(request.args.get('name'))
    return jsonify(catalog_service.serialize_products(products))


@bp.route('/products/admin', methods=['GET'])
@capability_required(can_manage_catalog)
def admin_products():
    """Every product for a Master; a Vendor's own products otherwise."""
    q = Product.query
    if current_user.role != Role.MASTER:
        q = q.filter_by(created_by=current_user.id)
    products = q.order_by(Product.created_at.desc(), Product.id.desc()).all()
    return jsonify(catalog_service.serialize_products(products))


@bp.route('/products/pending', methods=['GET'])
@capability_required(can_edit_any_product)
def pending_products():
    products = Product.query.filter_by(
        status=ProductStatus.PENDING
    ).order_by(Product.created_at.asc()).all()
    return jsonify(catalog_service.serialize_products(products))


@bp.route('/products/<int:product_id>', methods=['GET'])
def get_product(product_id):
    product = catalog_service.get_product(product_id)
    if not _visible(product):
        raise NotFoundError('Product not found')
    return jsonify(_product_detail(product))


@bp.route('/products', methods=['POST'])
@capability_required(can_manage_catalog)
def create_product():
    req = parse_body(ProductCreateRequest)
    data = req.model_dump(exclude={'variants'})
    variants = (
        [v.model_dump() for v in req.variants] if req.variants else None
    )
    product = catalog_service.create_product(current_user, data, variants)

    log_audit(
        actor=current_user,
        action='PRODUCT_CREATE',
        target_type='PRODUCT',
        target_id=product.id,
        payload={
            'name': product.name,
            'status': product.status.value,
            'variants': len(variants or ()),
        },
    )
    return jsonify(_product_detail(product)), 201


@bp.route('/products/<int:product_id>', methods=['PATCH'])
@capability_required(can_manage_catalog)
def update_product(product_id):
    req = parse_body(ProductUpdateRequest)
    product = catalog_service.update_product(
        current_user, product_id, provided_fields(req))
    return jsonify(_product_detail(product))


@bp.route('/products/<int:product_id>', methods=['DELETE'])
@capability_required(can_edit_any_product)
def delete_product(product_id):
    catalog_service.delete_product(current_user, product_id)
    log_audit(
        actor=current_user,
        action='PRODUCT_DELETE',
        target_type='PRODUCT',
        target_id=product_id,
    )
    return jsonify({'ok': True})


@bp.route('/products/<int:product_id>/review', methods=['PATCH'])
@capability_required(can_edit_any_product)
def review_product(product_id):
    req = parse_body(ProductReviewRequest)
    deleted = catalog_service.review_product(
        current_user, product_id, req.status, req.note)

    log_audit(
        actor=current_user,
        action='PRODUCT_REVIEW',
        target_type='PRODUCT',
        target_id=product_id,
        payload={'status': req.status, 'note': req.note, 'deleted': deleted},
    )
    return jsonify({'ok': True, 'status': req.status, 'deleted': deleted})


@bp.route('/products/<int:product_id>/variants', methods=['GET'])
def list_variants(product_id):
    product = catalog_service.get_product(product_id)
    if not _visible(product):
        raise NotFoundError('Product not found')
    return jsonify([v.to_dict() for v in product.variants])


@bp.route('/products/<int:product_id>/variants', methods=['POST'])
@capability_required(can_manage_catalog)
def add_variant(product_id):
    req = parse_body(VariantRequest)
    variant = catalog_service.add_variant(
        current_user,
        product_id,
        req.label,
        req.price,
        req.stock_available,
    )
    return jsonify(variant.to_dict()), 201


@bp.route('/variants/<int:variant_id>', methods=['PATCH'])
@capability_required(can_manage_catalog)
def update_variant(variant_id):
    req = parse_body(VariantUpdateRequest)
    variant = catalog_service.update_variant(
        current_user, variant_id, provided_fields(req))
    return jsonify(variant.to_dict())


@bp.route('/variants/<int:variant_id>', methods=['DELETE'])
@capability_required(can_manage_catalog)
def delete_variant(variant_id):
    catalog_service.delete_variant(current_user, variant_id)
    return jsonify({'ok': True})
