from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from agrimart.schemas import (
    CartAddRequest,
    CartItemRemoveRequest,
    CartItemUpdateRequest,
)
from agrimart.services import cart_service
from agrimart.utils import parse_body
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('cart', __name__)


def _cart_payload():
    items = cart_service.cart_items(current_user.id)
    return {
        'items': [cart_service.serialize_item(i) for i in items],
        'total': float(cart_service.cart_total(current_user.id)),
    }


@bp.route('/cart', methods=['GET'])
@login_required
def view_cart():
    return jsonify(_cart_payload())


@bp.route('/cart/add', methods=['POST'])
@login_required
def add_to_cart():
    req = parse_body(CartAddRequest)
    item = cart_service.add_to_cart(
        current_user.id, req.product_id, req.quantity, req.variant_id)
    logger.info(
        "User %s added product %s x%s to cart",
        current_user.id,
        req.product_id,
        req.quantity,
    )
    return jsonify(cart_service.serialize_item(item)), 201


@bp.route('/cart/item', methods=['PATCH'])
@login_required
def update_cart_item():
    req = parse_body(CartItemUpdateRequest)
    cart_service.set_quantity(
        current_user.id, req.product_id, req.quantity, req.variant_id)
    return jsonify(_cart_payload())


@bp.route('/cart/item', methods=['DELETE'])
@login_required
def remove_cart_item():
    req = parse_body(CartItemRemoveRequest)
    cart_service.remove_from_cart(
        current_user.id, req.product_id, req.variant_id)
    return jsonify(_cart_payload())


@bp.route('/cart/clear', methods=['POST', 'DELETE'])
@login_required
def clear_cart():
    cart_service.clear_cart(current_user.id)
    return jsonify({'ok': True})


@bp.route('/cart/total', methods=['GET'])
@login_required
def cart_total():
    return jsonify({'total': float(cart_service.cart_total(current_user.id))})
