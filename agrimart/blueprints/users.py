from flask import Blueprint, jsonify, request
from flask_login import current_user
from agrimart.middleware import capability_required
from agrimart.roles import can_manage_users
from agrimart.schemas import UpdateUserRequest
from agrimart.services import user_service
from agrimart.utils import parse_body, provided_fields

bp = Blueprint('users', __name__)


@bp.route('/users', methods=['GET'])
@capability_required(can_manage_users)
def list_users():
    staff_only = request.args.get('staff', '').lower() in ('1', 'true')
    users = user_service.list_users(staff_only=staff_only)
    return jsonify([u.to_dict() for u in users])


@bp.route('/admins', methods=['GET'])
@capability_required(can_manage_users)
def list_admins():
    return jsonify([u.to_dict() for u in user_service.list_users(True)])


@bp.route('/users/<int:user_id>', methods=['GET'])
@capability_required(can_manage_users)
def get_user(user_id):
    return jsonify(user_service.get_user(user_id).to_dict())


@bp.route('/users/<int:user_id>', methods=['PATCH'])
@capability_required(can_manage_users)
def update_user(user_id):
    req = parse_body(UpdateUserRequest)
    user = user_service.update_user(
        current_user, user_id, provided_fields(req))
    return jsonify(user.to_dict())


@bp.route('/users/<int:user_id>/role', methods=['PATCH'])
@capability_required(can_manage_users)
def set_role(user_id):
    req = parse_body(UpdateUserRequest)
    user = user_service.set_user_role(current_user, user_id, req.role)
    return jsonify(user.to_dict())
