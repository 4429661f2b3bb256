from agrimart.extensions import db
from agrimart.models import Notification, PushToken
from agrimart.services.push_service import send_push
from sqlalchemy import or_
import logging

logger = logging.getLogger(__name__)

STATUS_LABELS_TA = {
    'pending': 'நிலுவையில்',
    'confirmed': 'உறுதிப்படுத்தப்பட்டது',
    'processing': 'செயலாக்கத்தில்',
    'dispatched': 'அனுப்பப்பட்டது',
    'cancelled': 'ரத்து செய்யப்பட்டது',
}


def tokens_for_user(user_id):
    return [
        t.token for t in PushToken.query.filter_by(user_id=user_id).all()
    ]


def all_tokens():
    return [t.token for t in PushToken.query.all()]


def register_push_token(token, user_id=None) -> PushToken:
    """Store a device token; an existing token is re-bound to ``user_id``."""
    row = PushToken.query.filter_by(token=token).first()
    if row:
        if user_id is not None:
            row.user_id = user_id
    else:
        row = PushToken(token=token, user_id=user_id)
        db.session.add(row)
    db.session.commit()
    return row


def notifications_for(user_id, limit=50):
    """System-wide notifications plus the user's own, newest first."""
    return Notification.query.filter(
        or_(Notification.user_id.is_(None), Notification.user_id == user_id)
    ).order_by(
        Notification.created_at.desc(), Notification.id.desc()
    ).limit(limit).all()


def publish_system_notification(title, message, title_ta=None,
                                message_ta=None) -> Notification:
    note = Notification(
        title=title,
        message=message,
        title_ta=title_ta,
        message_ta=message_ta,
        user_id=None,
    )
    db.session.add(note)
    db.session.commit()

    send_push(all_tokens(), title, message)
    logger.info("System notification %s published", note.id)
    return note


def add_user_notification(user_id, title, message, title_ta=None,
                          message_ta=None) -> Notification:
    """Queue a per-user notification in the current session (no commit)."""
    note = Notification(
        user_id=user_id,
        title=title,
        message=message,
        title_ta=title_ta,
        message_ta=message_ta,
    )
    db.session.add(note)
    return note


def notify_order_status(order) -> Notification:
    status = order.status.value
    title = 'Order update'
    message = f'Your order #{order.id} is now {status}.'
    if order.tracking_number:
        message += f' Tracking: {order.tracking_number}'
    title_ta = 'ஆர்டர் நிலை'
    message_ta = (
        f'உங்கள் ஆர்டர் #{order.id} நிலை: '
        f'{STATUS_LABELS_TA.get(status, status)}'
    )
    return add_user_notification(
        order.user_id, title, message, title_ta, message_ta)
