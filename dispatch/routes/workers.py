"""Worker directory for admins assigning tasks."""

from flask import Blueprint, jsonify
from dispatch.models import User
from dispatch.utils import admin_required

workers_bp = Blueprint('workers', __name__)


@workers_bp.route('', methods=['GET'])
@admin_required
def list_workers(current_user):
    """List active workers, ordered by username."""
    workers = User.query.filter_by(user_type='worker', is_active=True).order_by(User.username).all()
    return jsonify({
        'workers': [{'username': w.username} for w in workers],
        'total': len(workers)
    }), 200
