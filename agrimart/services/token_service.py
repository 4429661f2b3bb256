from flask import current_app
from itsdangerous import (
    BadSignature,
    SignatureExpired,
    URLSafeTimedSerializer,
)
from agrimart.errors import AuthError
import logging

logger = logging.getLogger(__name__)

ACCESS_SALT = 'agrimart-access'
REFRESH_SALT = 'agrimart-refresh'


def _serializer(salt):
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=salt)


def issue_tokens(user):
    return {
        'access_token': _serializer(ACCESS_SALT).dumps({'uid': user.id}),
        'refresh_token': _serializer(REFRESH_SALT).dumps({'uid': user.id}),
        'token_type': 'Bearer',
        'expires_in': current_app.config['ACCESS_TOKEN_MAX_AGE'],
    }


def _load(token, salt, max_age):
    if not token:
        raise AuthError('Missing token')
    try:
        data = _serializer(salt).loads(token, max_age=max_age)
    except SignatureExpired:
        raise AuthError('Token expired') from None
    except BadSignature:
        raise AuthError('Invalid token') from None
    uid = data.get('uid') if isinstance(data, dict) else None
    if not isinstance(uid, int):
        raise AuthError('Invalid token')
    return uid


def verify_access_token(token) -> int:
    return _load(
        token,
        ACCESS_SALT,
        current_app.config['ACCESS_TOKEN_MAX_AGE'])


def verify_refresh_token(token) -> int:
    return _load(
        token,
        REFRESH_SALT,
        current_app.config['REFRESH_TOKEN_MAX_AGE'])
