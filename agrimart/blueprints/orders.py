from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from agrimart.middleware import capability_required
from agrimart.roles import can_manage_orders
from agrimart.schemas import CreateOrderRequest, UpdateOrderStatusRequest
from agrimart.services import order_service
from agrimart.services.audit_service import log_audit
from agrimart.utils import parse_body, provided_fields
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('orders', __name__)


def _is_manager():
    return can_manage_orders(current_user.role)


def _order_detail(order):
    data = order.to_dict()
    data['items'] = [i.to_dict() for i in order_service.order_items(order)]
    data['history'] = [
        h.to_dict() for h in order_service.status_history(order)]
    data['allowed_transitions'] = sorted(
        s.value for s in order_service.allowed_transitions(order.status))
    return data


@bp.route('/orders', methods=['POST'])
@login_required
def create_order():
    req = parse_body(CreateOrderRequest)
    order = order_service.create_order(
        current_user,
        req.payment_method,
        delivery_address=req.delivery_address,
        note=req.note,
    )

    log_audit(
        actor=current_user,
        action='ORDER_CREATE',
        target_type='ORDER',
        target_id=order.id,
        payload={
            'total_amount': float(order.total_amount),
            'payment_method': order.payment_method,
        },
    )
    return jsonify(_order_detail(order)), 201


@bp.route('/orders', methods=['GET'])
@login_required
def my_orders():
    orders = order_service.orders_for_user(current_user.id)
    return jsonify([o.to_dict() for o in orders])


@bp.route('/orders/all', methods=['GET'])
@capability_required(can_manage_orders)
def all_orders():
    return jsonify(order_service.all_orders())


@bp.route('/orders/<int:order_id>', methods=['GET'])
@login_required
def get_order(order_id):
    order = order_service.get_order_for(
        current_user, order_id, manager=_is_manager())
    return jsonify(_order_detail(order))


@bp.route('/orders/<int:order_id>/items', methods=['GET'])
@login_required
def order_items(order_id):
    order = order_service.get_order_for(
        current_user, order_id, manager=_is_manager())
    return jsonify([i.to_dict() for i in order_service.order_items(order)])


@bp.route('/orders/<int:order_id>/status-history', methods=['GET'])
@login_required
def status_history(order_id):
    order = order_service.get_order_for(
        current_user, order_id, manager=_is_manager())
    return jsonify([h.to_dict() for h in order_service.status_history(order)])


@bp.route('/orders/<int:order_id>/transitions', methods=['GET'])
@capability_required(can_manage_orders)
def order_transitions(order_id):
    order = order_service.get_order(order_id)
    return jsonify({
        'status': order.status.value,
        'allowed': sorted(
            s.value for s in order_service.allowed_transitions(order.status)),
    })


@bp.route('/orders/<int:order_id>', methods=['PATCH'])
@capability_required(can_manage_orders)
def update_order(order_id):
    req = parse_body(UpdateOrderStatusRequest)
    changes = provided_fields(req)
    previous = order_service.get_order(order_id).status.value
    order = order_service.update_order_status(current_user, order_id, changes)

    if order.status.value != previous:
        log_audit(
            actor=current_user,
            action='ORDER_STATUS_CHANGE',
            target_type='ORDER',
            target_id=order.id,
            payload={'from': previous, 'to': order.status.value},
        )
    return jsonify(_order_detail(order))


@bp.route('/orders/<int:order_id>', methods=['DELETE'])
@capability_required(can_manage_orders)
def delete_order(order_id):
    order_service.delete_order(order_id)
    log_audit(
        actor=current_user,
        action='ORDER_DELETE',
        target_type='ORDER',
        target_id=order_id,
    )
    return jsonify({'ok': True})
