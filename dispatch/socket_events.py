"""WebSocket events for live task updates and device-driven location checks."""

import asyncio
import logging

from flask import request
from flask_socketio import emit

from dispatch.presence import SocketLocationProvider
from dispatch.services.task_store import get_task_store, get_presence_workflow, task_path
from dispatch.utils.auth import decode_token

logger = logging.getLogger(__name__)

# sid -> {'username': ..., 'is_admin': ...}
connected_users = {}

# sid -> {path: Subscription}
task_subscriptions = {}


def _cancel_subscriptions(sid):
    for subscription in task_subscriptions.pop(sid, {}).values():
        subscription.cancel()


def register_socket_events(socketio):
    """Register all Socket.IO event handlers."""

    @socketio.on('connect')
    def handle_connect(auth):
        """Authenticate the connection with the JWT from auth or query params."""
        token = None
        if auth and isinstance(auth, dict):
            token = auth.get('token')
        elif request.args.get('token'):
            token = request.args.get('token')

        if not token:
            logger.warning('Socket connection without token')
            return False

        user = decode_token(token)
        if not user:
            logger.warning('Socket connection with invalid token')
            return False

        connected_users[request.sid] = {'username': user.username, 'is_admin': user.is_admin}
        logger.info(f'User {user.username} connected: {request.sid}')
        emit('connected', {'username': user.username})
        return True

    @socketio.on('disconnect')
    def handle_disconnect(*args):
        """Drop the connection's subscriptions."""
        _cancel_subscriptions(request.sid)
        user = connected_users.pop(request.sid, None)
        if user:
            logger.info(f"User {user['username']} disconnected: {request.sid}")

    @socketio.on('subscribe_tasks')
    def handle_subscribe_tasks(data=None):
        """Watch a task subtree; every change is pushed as 'tasks_changed'."""
        try:
            user = connected_users.get(request.sid)
            if not user:
                emit('error', {'message': 'Not authenticated'})
                return

            worker = (data or {}).get('worker')
            if not user['is_admin']:
                if worker and worker != user['username']:
                    emit('error', {'message': 'Access denied'})
                    return
                worker = user['username']

            path = task_path(worker) if worker else 'tasks'
            sid = request.sid

            def on_change(tasks):
                socketio.emit('tasks_changed', {'path': path, 'tasks': tasks}, to=sid)

            previous = task_subscriptions.setdefault(sid, {}).pop(path, None)
            if previous:
                previous.cancel()
            task_subscriptions[sid][path] = get_task_store().subscribe(path, on_change)
            logger.info(f"User {user['username']} subscribed to {path}")

        except Exception as e:
            logger.error(f'Subscribe tasks error: {e}')
            emit('error', {'message': 'Failed to subscribe to tasks'})

    @socketio.on('unsubscribe_tasks')
    def handle_unsubscribe_tasks(data=None):
        """Stop watching one path, or everything when no worker is given."""
        user = connected_users.get(request.sid)
        if not user:
            return

        worker = (data or {}).get('worker')
        if worker is None and not user['is_admin']:
            worker = user['username']
        path = task_path(worker) if worker else 'tasks'

        subscription = task_subscriptions.get(request.sid, {}).pop(path, None)
        if subscription:
            subscription.cancel()
        emit('unsubscribed', {'path': path})

    def _run_action(data, result_event, run):
        user = connected_users.get(request.sid)
        task_id = str((data or {}).get('task_id') or '')
        if not user:
            emit('error', {'message': 'Not authenticated'})
            return
        if not task_id:
            emit(result_event, {'ok': False, 'error': 'invalid_request', 'message': 'task_id is required'})
            return

        try:
            task = get_task_store().get(user['username'], task_id)
            if not task:
                emit(result_event, {
                    'ok': False,
                    'task_id': task_id,
                    'error': 'not_found',
                    'message': 'Task not found',
                })
                return

            provider = SocketLocationProvider(socketio, request.sid)
            result = asyncio.run(run(task, provider, request.sid))
            emit(result_event, result.to_dict())

        except Exception as e:
            logger.error(f'{result_event} error for task {task_id}: {e}')
            emit(result_event, {
                'ok': False,
                'task_id': task_id,
                'error': 'unexpected',
                'message': 'An unexpected error occurred. Please try again.',
            })

    @socketio.on('confirm_presence')
    def handle_confirm_presence(data):
        """Run the on-site check against the caller's own device."""
        workflow = get_presence_workflow()

        def run(task, provider, sid):
            def on_progress(value):
                socketio.emit('presence_progress', {'task_id': task['id'], 'progress': value}, to=sid)
            return workflow.confirm_presence(task, provider, on_progress=on_progress)

        _run_action(data, 'presence_result', run)

    @socketio.on('complete_task')
    def handle_complete_task(data):
        """Complete a task after re-checking the caller's location."""
        workflow = get_presence_workflow()

        def run(task, provider, sid):
            return workflow.complete_task(task, provider)

        _run_action(data, 'completion_result', run)
