"""
Authentication helpers
Password hashing, signed bearer tokens and the require_auth decorator
"""

from datetime import timedelta
from functools import wraps

from flask import current_app, g, jsonify, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.security import check_password_hash, generate_password_hash

from database import get_user_by_id

TOKEN_MAX_AGE = timedelta(days=7)
TOKEN_SALT = 'auth-token'

# Compared against when the email is unknown so both login failures cost the same
_DUMMY_HASH = generate_password_hash('not-a-real-password')


def hash_password(password):
    return generate_password_hash(password)


def verify_password(password_hash, password):
    """Check a password; pass None as the hash for unknown users"""
    if not password_hash:
        check_password_hash(_DUMMY_HASH, password or '')
        return False
    return check_password_hash(password_hash, password or '')


def _serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=TOKEN_SALT)


def generate_token(user_id):
    """Signed, timestamped token carrying the user id"""
    return _serializer().dumps({'userId': user_id})


def load_token(token):
    """Return the user id in a token, or None if it is invalid or older than 7 days"""
    try:
        data = _serializer().loads(token, max_age=int(TOKEN_MAX_AGE.total_seconds()))
    except SignatureExpired:
        current_app.logger.info("Rejected expired token")
        return None
    except BadSignature:
        return None

    user_id = data.get('userId') if isinstance(data, dict) else None
    try:
        # Ensure user_id is an integer
        return int(user_id)
    except (ValueError, TypeError):
        return None


def get_bearer_token():
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def require_auth(f):
    """Decorator to require a valid bearer token - sets g.user_id"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = get_bearer_token()
        if not token:
            return jsonify({'error': 'No token provided, authorization denied'}), 401

        user_id = load_token(token)
        if not user_id or not get_user_by_id(user_id):
            return jsonify({'error': 'Token is not valid'}), 401

        g.user_id = user_id
        return f(*args, **kwargs)
    return decorated_function
