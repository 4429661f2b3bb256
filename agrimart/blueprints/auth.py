from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from agrimart.errors import AuthError
from agrimart.extensions import db
from agrimart.middleware import capability_required
from agrimart.models import User
from agrimart.roles import Role, can_manage_users
from agrimart.schemas import (
    CreateAdminRequest,
    RefreshRequest,
    SigninRequest,
    SignupRequest,
    UpdateUserRequest,
)
from agrimart.services.audit_service import log_audit
from agrimart.services.token_service import issue_tokens, verify_refresh_token
from agrimart.services import user_service
from agrimart.utils import parse_body, provided_fields
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__)


def _session_payload(user):
    body = issue_tokens(user)
    body['user'] = user.to_dict()
    return body


@bp.route('/auth/signup', methods=['POST'])
def signup():
    req = parse_body(SignupRequest)
    user = user_service.create_user(req.number, req.password, req.full_name)

    log_audit(
        actor=user,
        action='SIGNUP',
        target_type='USER',
        target_id=user.id,
    )
    return jsonify(_session_payload(user)), 201


@bp.route('/auth/signin', methods=['POST'])
def signin():
    req = parse_body(SigninRequest)
    try:
        user = user_service.authenticate(req.number, req.password)
    except AuthError:
        log_audit(
            action='SIGNIN_FAILED',
            target_type='USER',
            payload={'number': req.number},
        )
        raise

    log_audit(
        actor=user,
        action='SIGNIN',
        target_type='USER',
        target_id=user.id,
    )
    return jsonify(_session_payload(user))


@bp.route('/auth/refresh', methods=['POST'])
def refresh():
    req = parse_body(RefreshRequest)
    user_id = verify_refresh_token(req.refresh_token)
    user = db.session.get(User, user_id)
    if not user:
        raise AuthError('Invalid token')
    return jsonify(_session_payload(user))


@bp.route('/auth/me', methods=['GET'])
@login_required
def me():
    return jsonify(current_user.to_dict())


@bp.route('/auth/create-admin', methods=['POST'])
@capability_required(can_manage_users)
def create_admin():
    req = parse_body(CreateAdminRequest)
    user = user_service.create_user(
        req.number, req.password, req.full_name, role=Role(req.role))

    log_audit(
        actor=current_user,
        action='ADMIN_CREATE',
        target_type='USER',
        target_id=user.id,
        payload={'role': Role(req.role).name},
    )
    return jsonify(user.to_dict()), 201


@bp.route('/auth/me', methods=['PATCH'])
@login_required
def update_me():
    req = parse_body(UpdateUserRequest)
    changes = provided_fields(req)
    # Role is changed through the users endpoints only.
    changes.pop('role', None)
    user = user_service.update_user(current_user, current_user.id, changes)
    return jsonify(user.to_dict())
