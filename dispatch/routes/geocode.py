"""Address suggestions for the task creation form."""

from flask import Blueprint, request, jsonify
from dispatch.services.geocoding import suggest_addresses
from dispatch.utils import admin_required

geocode_bp = Blueprint('geocode', __name__)


@geocode_bp.route('/suggestions', methods=['GET'])
@admin_required
def get_suggestions(current_user):
    """Suggest addresses for a partially typed query.

    Query params:
    - q: the text typed so far (at least 3 characters)
    - limit: maximum number of suggestions (default: 10)
    """
    query = request.args.get('q', '')
    limit = request.args.get('limit', 10, type=int)
    return jsonify({'suggestions': suggest_addresses(query, limit=limit)}), 200
