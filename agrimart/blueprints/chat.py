from datetime import datetime, timezone

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from agrimart.errors import ValidationError
from agrimart.middleware import capability_required
from agrimart.roles import is_support
from agrimart.schemas import (
    ConversationCreateRequest,
    MessageRequest,
    SeenRequest,
)
from agrimart.services import chat_service
from agrimart.utils import parse_body

bp = Blueprint('chat', __name__)


def _since_arg():
    raw = request.args.get('since')
    if not raw:
        return None
    try:
        ts = datetime.fromisoformat(raw.replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError('since must be an ISO timestamp') from None
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


@bp.route('/conversations', methods=['GET'])
@login_required
def list_conversations():
    return jsonify(chat_service.conversations_for(current_user))


@bp.route('/conversations', methods=['POST'])
@login_required
def create_conversation():
    req = parse_body(ConversationCreateRequest)
    conv, created = chat_service.create_conversation(
        current_user, req.user_ids, req.initial_text)
    body = chat_service.summarize(conv, current_user.id)
    return jsonify(body), 201 if created else 200


@bp.route('/conversations/unread', methods=['GET'])
@login_required
def unread_total():
    return jsonify({'unread': chat_service.total_unread(current_user)})


@bp.route('/conversations/<int:conversation_id>/messages', methods=['GET'])
@login_required
def list_messages(conversation_id):
    messages = chat_service.messages_for(
        current_user, conversation_id, since=_since_arg())
    return jsonify([m.to_dict() for m in messages])


@bp.route('/conversations/<int:conversation_id>/messages', methods=['POST'])
@login_required
def send_message(conversation_id):
    req = parse_body(MessageRequest)
    msg = chat_service.send_message(current_user, conversation_id, req.text)
    return jsonify(msg.to_dict()), 201


@bp.route('/conversations/<int:conversation_id>/seen', methods=['POST'])
@login_required
def mark_seen(conversation_id):
    req = parse_body(SeenRequest)
    chat_service.mark_seen(current_user, conversation_id, req.seen_at)
    return jsonify({'ok': True})


@bp.route('/support/inbox', methods=['GET'])
@capability_required(is_support)
def support_inbox():
    return jsonify(chat_service.support_inbox(current_user))
