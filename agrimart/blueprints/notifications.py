from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from agrimart.middleware import capability_required
from agrimart.roles import can_manage_content
from agrimart.schemas import NotificationRequest, PushRegisterRequest
from agrimart.services import notification_service
from agrimart.services.audit_service import log_audit
from agrimart.utils import parse_body

bp = Blueprint('notifications', __name__)


@bp.route('/notifications', methods=['GET'])
@login_required
def list_notifications():
    limit = min(request.args.get('limit', 50, type=int), 200)
    notes = notification_service.notifications_for(current_user.id, limit)
    return jsonify([n.to_dict() for n in notes])


@bp.route('/notifications', methods=['POST'])
@capability_required(can_manage_content)
def publish_notification():
    req = parse_body(NotificationRequest)
    note = notification_service.publish_system_notification(
        req.title, req.message, req.title_ta, req.message_ta)

    log_audit(
        actor=current_user,
        action='ADMIN_NOTIFICATION_PUBLISH',
        target_type='NOTIFICATION',
        target_id=note.id,
        payload={'title': note.title},
    )
    return jsonify(note.to_dict()), 201


@bp.route('/push/register', methods=['POST'])
def register_push():
    # Devices may register before signing in.
    req = parse_body(PushRegisterRequest)
    user_id = current_user.id if current_user.is_authenticated else None
    notification_service.register_push_token(req.token, user_id)
    return jsonify({'ok': True})
