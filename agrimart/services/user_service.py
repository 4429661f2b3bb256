from agrimart.extensions import db
from agrimart.errors import AuthError, NotFoundError, ValidationError
from agrimart.models import User
from agrimart.roles import Role
from agrimart.services.audit_service import log_audit
from datetime import datetime
from sqlalchemy.exc import IntegrityError
import logging

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ('full_name', 'number', 'address', 'delivery_address')


def get_user(user_id) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError('User not found')
    return user


def create_user(number, password, full_name=None, role=Role.USER) -> User:
    if User.query.filter_by(number=number).first():
        raise ValidationError('Phone number already registered')

    user = User(number=number, full_name=full_name, role=int(role))
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError('Phone number already registered') from None
    return user


def authenticate(number, password) -> User:
    user = User.query.filter_by(number=number).first()
    if not user or not user.check_password(password):
        raise AuthError('Invalid phone number or password')
    user.last_login_at = datetime.utcnow()
    db.session.commit()
    return user


def list_users(staff_only=False):
    q = User.query
    if staff_only:
        q = q.filter(User.role != int(Role.USER))
    return q.order_by(User.created_at.desc(), User.id.desc()).all()


def _master_count():
    return User.query.filter_by(role=int(Role.MASTER)).count()


def set_user_role(actor, user_id, role) -> User:
    """Change a user's role. The last Master cannot be demoted."""
    user = get_user(user_id)
    try:
        new_role = Role.parse(role)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid role: {role}') from None

    old_role = Role(user.role)
    if old_role == new_role:
        return user
    if old_role == Role.MASTER and _master_count() <= 1:
        raise ValidationError('Cannot demote the last master')

    user.role = int(new_role)
    db.session.commit()

    log_audit(
        actor=actor,
        action='ROLE_CHANGE',
        target_type='USER',
        target_id=user.id,
        payload={'from': old_role.name, 'to': new_role.name},
    )
    return user


def update_user(actor, user_id, changes: dict) -> User:
    user = get_user(user_id)
    for key in PROFILE_FIELDS:
        if key in changes:
            if key == 'number' and not changes[key]:
                raise ValidationError('number cannot be empty')
            setattr(user, key, changes[key])
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError('Phone number already registered') from None

    if changes.get('role') is not None:
        set_user_role(actor, user.id, changes['role'])
    return user
