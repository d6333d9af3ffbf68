"""Create, list and read tasks."""

from flask import request, jsonify
from dispatch.models import User
from dispatch.routes.tasks import tasks_bp
from dispatch.routes.tasks.helpers import TASK_STATUSES, filter_by_status, can_view_worker
from dispatch.services.geocoding import geocode_address, GeocodingError
from dispatch.services.task_store import get_task_store, task_path
from dispatch.utils import token_required, admin_required
import logging

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ['title', 'location', 'time', 'assigned_to']


@tasks_bp.route('', methods=['POST'])
@admin_required
def create_task(current_user):
    """Create a task for a worker; the address is geocoded once, here."""
    data = request.get_json() or {}

    missing = [f for f in REQUIRED_FIELDS if not str(data.get(f) or '').strip()]
    if missing:
        return jsonify({'error': f"Fill in all fields: {', '.join(missing)}"}), 400

    title = data['title'].strip()
    location = data['location'].strip()
    worker_name = data['assigned_to'].strip()

    if len(title) > 255:
        return jsonify({'error': 'Title must be less than 255 characters'}), 400
    if len(location) > 255:
        return jsonify({'error': 'Location must be less than 255 characters'}), 400

    worker = User.query.filter_by(username=worker_name, user_type='worker').first()
    if not worker:
        return jsonify({'error': 'Worker not found'}), 404

    try:
        coordinates = geocode_address(location)
    except GeocodingError as e:
        return jsonify({'error': str(e)}), 400

    try:
        task = get_task_store().create(worker.username, {
            'title': title,
            'location': location,
            'coordinates': {
                'latitude': coordinates['latitude'],
                'longitude': coordinates['longitude'],
            },
            'time': str(data['time']).strip(),
            'assigned_by': current_user.username,
        })
    except Exception as e:
        logger.error(f'Failed to create task for {worker.username}: {e}')
        return jsonify({'error': 'Could not create task'}), 500

    return jsonify({'message': 'Task created!', 'task': task}), 201


@tasks_bp.route('', methods=['GET'])
@token_required
def list_tasks(current_user):
    """List tasks.

    Query params:
    - worker: only this worker's tasks (workers always get their own)
    - status: 'active', 'completed' or 'all' (default: 'all')
    """
    status = request.args.get('status', 'all')
    if status not in TASK_STATUSES:
        return jsonify({'error': f"status must be one of: {', '.join(sorted(TASK_STATUSES))}"}), 400

    worker = request.args.get('worker')
    if not current_user.is_admin:
        if worker and worker != current_user.username:
            return jsonify({'error': 'You can only view your own tasks'}), 403
        worker = current_user.username

    path = task_path(worker) if worker else 'tasks'
    tasks = filter_by_status(get_task_store().snapshot(path), status)

    return jsonify({'tasks': tasks, 'total': len(tasks)}), 200


@tasks_bp.route('/<worker>/<task_id>', methods=['GET'])
@token_required
def get_task(current_user, worker, task_id):
    """Get a single task."""
    if not can_view_worker(current_user, worker):
        return jsonify({'error': 'You can only view your own tasks'}), 403

    task = get_task_store().get(worker, task_id)
    if not task:
        return jsonify({'error': 'Task not found'}), 404

    return jsonify(task), 200
