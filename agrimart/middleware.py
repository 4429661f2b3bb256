from flask import request
from flask_login import current_user
from functools import wraps
from agrimart.errors import AuthError, PermissionDenied
from agrimart.services.token_service import verify_access_token
import logging

logger = logging.getLogger(__name__)


def bearer_token_from_request():
    header = request.headers.get('Authorization', '') or ''
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def setup_auth_middleware(app, login_manager):

    @login_manager.request_loader
    def load_user_from_request(req):
        from agrimart.extensions import db
        from agrimart.models import User

        token = bearer_token_from_request()
        if not token:
            return None
        try:
            user_id = verify_access_token(token)
        except AuthError as e:
            logger.info("Rejected bearer token: %s", e.message)
            return None
        return db.session.get(User, user_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        raise AuthError('Not logged in')


def capability_required(*checks):
    """Allow the request when the current user's role passes any check."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                raise AuthError('Not logged in')

            if not any(check(current_user.role) for check in checks):
                logger.warning(
                    "User %s (role %s) denied %s %s",
                    current_user.id,
                    current_user.role,
                    request.method,
                    request.path,
                )
                raise PermissionDenied('Insufficient permissions')

            return f(*args, **kwargs)
        return decorated_function
    return decorator
