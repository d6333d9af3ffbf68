"""Shared authentication utilities.

JWT decorators used by every route file so authentication behaves the
same everywhere.
"""

from datetime import datetime, timedelta
from functools import wraps
from flask import request, jsonify, current_app
import jwt

from dispatch import db
from dispatch.models import User


def generate_token(user):
    """Issue a signed JWT for the user."""
    payload = {
        'user_id': user.id,
        'username': user.username,
        'user_type': user.user_type,
        'exp': datetime.utcnow() + timedelta(seconds=current_app.config['JWT_ACCESS_TOKEN_EXPIRES'])
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET_KEY'], algorithm='HS256')


def decode_token(token):
    """Return the User for a token, or None if it is invalid or expired."""
    if not token:
        return None
    if token.startswith('Bearer '):
        token = token.split(' ', 1)[1]
    try:
        payload = jwt.decode(token, current_app.config['JWT_SECRET_KEY'], algorithms=['HS256'])
    except jwt.InvalidTokenError:
        return None

    user = db.session.get(User, payload.get('user_id'))
    if not user or not user.is_active:
        return None
    return user


def token_required(f):
    """
    Decorator to require valid JWT token.

    Loads the authenticated User and passes it as the first argument
    to the decorated function.

    Usage:
        @app.route('/protected')
        @token_required
        def protected_route(current_user):
            return jsonify({'username': current_user.username})
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        auth_header = request.headers.get('Authorization')

        if not auth_header:
            return jsonify({'error': 'Token is missing'}), 401

        # Support both "Bearer <token>" and raw token formats
        token = auth_header.split(' ')[1] if ' ' in auth_header else auth_header
        try:
            jwt.decode(token, current_app.config['JWT_SECRET_KEY'], algorithms=['HS256'])
        except jwt.ExpiredSignatureError:
            return jsonify({'error': 'Token has expired'}), 401
        except jwt.InvalidTokenError:
            return jsonify({'error': 'Token is invalid'}), 401

        current_user = decode_token(token)
        if current_user is None:
            return jsonify({'error': 'Token is invalid'}), 401

        return f(current_user, *args, **kwargs)
    return decorated


def admin_required(f):
    """Like token_required, but only for admin accounts."""
    @wraps(f)
    @token_required
    def decorated(current_user, *args, **kwargs):
        if not current_user.is_admin:
            return jsonify({'error': 'Admin access required'}), 403
        return f(current_user, *args, **kwargs)
    return decorated
