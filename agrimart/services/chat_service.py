from agrimart.extensions import db
from agrimart.errors import NotFoundError, PermissionDenied, ValidationError
from agrimart.models import (
    Conversation,
    ConversationSeen,
    Message,
    User,
    conversation_participants,
)
from agrimart.roles import Role
from agrimart.services.notification_service import tokens_for_user
from agrimart.services.push_service import send_push
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


def get_conversation(conversation_id) -> Conversation:
    conv = db.session.get(Conversation, conversation_id)
    if not conv:
        raise NotFoundError('Conversation not found')
    return conv


def _has_support_participant(conv: Conversation) -> bool:
    return any(u.role == int(Role.SUPPORT) for u in conv.participants)


def _conversation_accessible(conv: Conversation, user) -> bool:
    if user.id in conv.participant_ids:
        return True
    # Support staff share one inbox.
    return user.role == int(Role.SUPPORT) and _has_support_participant(conv)


def get_conversation_for(user, conversation_id) -> Conversation:
    conv = get_conversation(conversation_id)
    if not _conversation_accessible(conv, user):
        raise PermissionDenied('Not a participant of this conversation')
    return conv


def _find_by_participants(participant_ids):
    """Existing conversation with exactly this participant set, if any."""
    wanted = sorted(set(participant_ids))
    candidates = Conversation.query.join(
        conversation_participants,
        conversation_participants.c.conversation_id == Conversation.id,
    ).filter(
        conversation_participants.c.user_id == wanted[0]
    ).all()
    for conv in candidates:
        if conv.participant_ids == wanted:
            return conv
    return None


def create_conversation(user, user_ids, initial_text=None):
    """Open a conversation between ``user`` and ``user_ids``.

    A conversation is identified by its participant set, so asking for an
    existing set returns that conversation. Returns (conversation, created).
    """
    ids = set(int(u) for u in user_ids)
    ids.add(user.id)
    if len(ids) < 2:
        raise ValidationError('A conversation needs at least two participants')

    participants = User.query.filter(User.id.in_(ids)).all()
    if len(participants) != len(ids):
        raise NotFoundError('User not found')

    conv = _find_by_participants(ids)
    created = conv is None
    if created:
        conv = Conversation(participants=participants)
        db.session.add(conv)
        db.session.commit()
        logger.info(
            "Conversation %s created for users %s", conv.id, sorted(ids))

    if initial_text and initial_text.strip():
        send_message(user, conv.id, initial_text)
    return conv, created


def send_message(user, conversation_id, text) -> Message:
    conv = get_conversation_for(user, conversation_id)
    text = (text or '').strip()
    if not text:
        raise ValidationError('Message text cannot be empty')

    msg = Message(conversation_id=conv.id, sender_id=user.id, text=text)
    db.session.add(msg)
    db.session.flush()
    conv.last_message_at = msg.created_at
    _mark_seen(conv.id, user.id, msg.created_at)
    db.session.commit()

    sender = user.full_name or user.number
    for participant in conv.participants:
        if participant.id == user.id:
            continue
        send_push(tokens_for_user(participant.id), sender, text[:120])
    return msg


def messages_for(user, conversation_id, since=None):
    conv = get_conversation_for(user, conversation_id)
    q = conv.messages
    if since is not None:
        q = q.filter(Message.created_at > since)
    return q.order_by(Message.created_at.asc(), Message.id.asc()).all()


def _mark_seen(conversation_id, user_id, seen_at):
    row = db.session.get(ConversationSeen, (conversation_id, user_id))
    if row:
        if seen_at > row.last_seen_at:
            row.last_seen_at = seen_at
    else:
        db.session.add(ConversationSeen(
            conversation_id=conversation_id,
            user_id=user_id,
            last_seen_at=seen_at,
        ))


def mark_seen(user, conversation_id, seen_at=None):
    conv = get_conversation_for(user, conversation_id)
    if seen_at is None:
        seen_at = datetime.utcnow()
    elif seen_at.tzinfo is not None:
        # Stored timestamps are naive UTC.
        seen_at = seen_at.astimezone(timezone.utc).replace(tzinfo=None)
    _mark_seen(conv.id, user.id, seen_at)
    db.session.commit()


def unread_count(conv, user_id) -> int:
    seen = db.session.get(ConversationSeen, (conv.id, user_id))
    q = Message.query.filter(
        Message.conversation_id == conv.id,
        Message.sender_id != user_id,
    )
    if seen:
        q = q.filter(Message.created_at > seen.last_seen_at)
    return q.count()


def _last_message(conv):
    return conv.messages.order_by(
        Message.created_at.desc(), Message.id.desc()).first()


def summarize(conv, user_id) -> dict:
    last = _last_message(conv)
    return {
        'id': conv.id,
        'participant_ids': conv.participant_ids,
        'participants': [
            {'id': u.id, 'full_name': u.full_name, 'role': u.role}
            for u in conv.participants
        ],
        'last_text': last.text if last else None,
        'last_time': last.created_at.isoformat() if last else None,
        'unread_count': unread_count(conv, user_id),
    }


def _sort_key(conv):
    return conv.last_message_at or conv.created_at


def conversations_for(user):
    convs = Conversation.query.join(
        conversation_participants,
        conversation_participants.c.conversation_id == Conversation.id,
    ).filter(conversation_participants.c.user_id == user.id).all()
    convs.sort(key=_sort_key, reverse=True)
    return [summarize(c, user.id) for c in convs]


def support_inbox(user):
    """Every conversation with a Support participant."""
    support_ids = [
        u.id for u in User.query.filter_by(role=int(Role.SUPPORT)).all()
    ]
    if not support_ids:
        return []
    convs = Conversation.query.join(
        conversation_participants,
        conversation_participants.c.conversation_id == Conversation.id,
    ).filter(
        conversation_participants.c.user_id.in_(support_ids)
    ).distinct().all()
    convs.sort(key=_sort_key, reverse=True)
    return [summarize(c, user.id) for c in convs]


def total_unread(user) -> int:
    return sum(c['unread_count'] for c in conversations_for(user))
