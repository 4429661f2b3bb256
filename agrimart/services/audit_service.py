from agrimart.extensions import db
from agrimart.models import AuditLog
from agrimart.roles import Role
from flask import has_request_context, request
import logging
import json

logger = logging.getLogger(__name__)
major_logger = logging.getLogger('major_events')
if not major_logger.handlers:
    handler = logging.FileHandler('major_events.log', delay=True)
    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s')
    handler.setFormatter(formatter)
    major_logger.addHandler(handler)
    major_logger.setLevel(logging.INFO)
    major_logger.propagate = False

MAJOR_ACTION_PREFIXES = (
    'SIGNIN',
    'SIGNUP',
    'ORDER_',
    'ROLE_',
    'PRODUCT_',
    'ADMIN_',
)


def _should_log_major(action: str) -> bool:
    if not action:
        return False
    return action.startswith(MAJOR_ACTION_PREFIXES)


def role_label(user) -> str:
    if user is None:
        return 'ANONYMOUS'
    try:
        return Role(user.role).name
    except ValueError:
        return str(user.role)


def log_audit(
        actor=None,
        action='',
        target_type=None,
        target_id=None,
        payload=None):
    """Persist an audit row and mirror it to the log files.

    Failures are logged and rolled back; they never break the request that
    triggered them.
    """
    try:
        ip = None
        user_agent = None
        path = None
        method = None
        if has_request_context():
            ip = request.remote_addr
            user_agent = request.headers.get('User-Agent')
            path = request.path
            method = request.method

        actor_id = getattr(actor, 'id', None)
        actor_role = role_label(actor)

        audit = AuditLog(
            actor_id=actor_id,
            actor_role=actor_role,
            action=action,
            target_type=target_type,
            target_id=target_id,
            ip=ip,
            user_agent=user_agent
        )

        if payload:
            audit.set_payload(payload)

        db.session.add(audit)
        db.session.commit()

        payload_brief = None
        if payload is not None:
            payload_brief = json.dumps(
                payload, ensure_ascii=False, separators=(',', ':'),
                default=str)
            if len(payload_brief) > 600:
                payload_brief = payload_brief[:600] + '...'

        logger.info(
            "AUDIT action=%s actor_role=%s actor_id=%s target_type=%s "
            "target_id=%s method=%s path=%s payload=%s",
            action,
            actor_role,
            actor_id,
            target_type,
            target_id,
            method,
            path,
            payload_brief,
        )

        if _should_log_major(action):
            major_logger.info(
                "action=%s actor_role=%s actor_id=%s target_type=%s "
                "target_id=%s method=%s path=%s payload=%s",
                action,
                actor_role,
                actor_id,
                target_type,
                target_id,
                method,
                path,
                payload_brief,
            )

    except Exception as e:
        logger.error(f"Failed to log audit: {e}", exc_info=True)
        db.session.rollback()
