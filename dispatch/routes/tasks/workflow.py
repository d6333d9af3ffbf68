"""Task workflow routes (confirm-presence, complete, activity).

The worker's device acquires the fix and posts it:

    {"latitude": 55.75, "longitude": 37.61, "accuracy": 12.0}

A device that was refused location access sends ``{"permission": "denied"}``;
one whose GPS failed sends ``{"error": "timeout"}`` or another message.
The task's own state is checked before the fix is looked at, so a body
without a fix still learns that the task is completed or not confirmed.
"""

import asyncio

from flask import request, jsonify
from dispatch.presence import ReportedLocationProvider
from dispatch.routes.tasks import tasks_bp
from dispatch.routes.tasks.helpers import can_view_worker
from dispatch.services.task_store import get_task_store, get_presence_workflow, task_path
from dispatch.utils import token_required


def _load_assigned_task(current_user, worker, task_id):
    """Return (task, error_response)."""
    if current_user.username != worker:
        return None, (jsonify({'error': 'Only the assigned worker can do this'}), 403)

    task = get_task_store().get(worker, task_id)
    if not task:
        return None, (jsonify({'error': 'Task not found'}), 404)
    return task, None


def _respond(result, worker, task_id):
    body = result.to_dict()
    body['task'] = get_task_store().get(worker, task_id)
    return jsonify(body), result.http_status


@tasks_bp.route('/<worker>/<task_id>/confirm-presence', methods=['POST'])
@token_required
def confirm_presence(current_user, worker, task_id):
    """Worker confirms being on site; records the check either way."""
    task, error = _load_assigned_task(current_user, worker, task_id)
    if error:
        return error

    provider = ReportedLocationProvider(request.get_json(silent=True))
    result = asyncio.run(get_presence_workflow().confirm_presence(task, provider))
    return _respond(result, worker, task_id)


@tasks_bp.route('/<worker>/<task_id>/complete', methods=['POST'])
@token_required
def complete_task(current_user, worker, task_id):
    """Worker completes a task after a successful on-site confirmation."""
    task, error = _load_assigned_task(current_user, worker, task_id)
    if error:
        return error

    provider = ReportedLocationProvider(request.get_json(silent=True))
    result = asyncio.run(get_presence_workflow().complete_task(task, provider))
    return _respond(result, worker, task_id)


@tasks_bp.route('/<worker>/<task_id>/activity', methods=['GET'])
@token_required
def task_activity(current_user, worker, task_id):
    """Whether a location check is running for the task, and its progress."""
    if not can_view_worker(current_user, worker):
        return jsonify({'error': 'You can only view your own tasks'}), 403

    activity = get_presence_workflow().activity
    return jsonify(activity.snapshot(task_path(worker, task_id))), 200
