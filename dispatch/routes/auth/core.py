"""Core authentication routes: registration and login."""

from flask import request, jsonify
from dispatch import db, limiter
from dispatch.constants import USER_TYPES
from dispatch.models import User
from dispatch.routes.auth import auth_bp
from dispatch.utils import token_required, generate_token
import re

# Username validation: 3-30 chars, alphanumeric + underscores
USERNAME_REGEX = re.compile(r'^[a-zA-Z0-9_]{3,30}$')


@auth_bp.route('/register', methods=['POST'])
@limiter.limit("5 per minute")
def register():
    """Register a new admin or worker account."""
    try:
        data = request.get_json()

        if not data or not all(k in data for k in ['username', 'password']):
            return jsonify({'error': 'Missing required fields'}), 400

        username = str(data['username']).strip()
        password = data['password']
        user_type = data.get('user_type', 'worker')

        # Usernames become path segments in tasks/{worker}/{id}
        if not USERNAME_REGEX.match(username):
            return jsonify({'error': 'Username must be 3-30 characters and contain only letters, numbers, and underscores'}), 400

        if not isinstance(password, str) or len(password) < 6:
            return jsonify({'error': 'Password must be at least 6 characters'}), 400

        if len(password) > 128:
            return jsonify({'error': 'Password must be less than 128 characters'}), 400

        if user_type not in USER_TYPES:
            return jsonify({'error': f"user_type must be one of: {', '.join(sorted(USER_TYPES))}"}), 400

        if User.query.filter_by(username=username).first():
            return jsonify({'error': 'Username already exists'}), 409

        user = User(username=username, user_type=user_type)
        user.set_password(password)

        db.session.add(user)
        db.session.commit()

        return jsonify({
            'message': 'User registered successfully',
            'token': generate_token(user),
            'user': user.to_dict()
        }), 201
    except Exception:
        db.session.rollback()
        raise


@auth_bp.route('/login', methods=['POST'])
@limiter.limit("10 per minute")
def login():
    """Authenticate user and return JWT token."""
    data = request.get_json()

    if not data or not all(k in data for k in ['username', 'password']):
        return jsonify({'error': 'Missing username or password'}), 400

    user = User.query.filter_by(username=data['username']).first()

    if not user:
        return jsonify({'error': 'User not found'}), 401

    if not user.check_password(data['password']):
        return jsonify({'error': 'Invalid password'}), 401

    if not user.is_active:
        return jsonify({'error': 'Account is disabled'}), 403

    return jsonify({
        'message': 'Login successful',
        'token': generate_token(user),
        'user': user.to_dict()
    }), 200


@auth_bp.route('/me', methods=['GET'])
@token_required
def me(current_user):
    """Return the authenticated user."""
    return jsonify(current_user.to_dict()), 200
