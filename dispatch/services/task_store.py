"""Task store: where tasks live and how changes reach subscribers.

Tasks are addressed by path, the same way the mobile clients address them
in the Realtime Database::

    tasks                     every task
    tasks/{worker}            one worker's tasks
    tasks/{worker}/{task_id}  a single task

``update`` merges fields into one task; ``subscribe`` delivers the current
subtree (a list of task dicts) right away and again after every change.
"""

import logging
import threading
import time

from flask import current_app

from dispatch import db
from dispatch.models import Task

logger = logging.getLogger(__name__)

# Fields the workflows may merge into an existing task
WRITABLE_FIELDS = {
    'is_on_site',
    'last_checked',
    'last_location',
    'completed',
    'completed_at',
    'completed_location',
}

_id_lock = threading.Lock()
_last_id = 0


class TaskNotFound(LookupError):
    pass


def next_task_id():
    """Millisecond timestamp id, strictly increasing within this process."""
    global _last_id
    with _id_lock:
        candidate = int(time.time() * 1000)
        if candidate <= _last_id:
            candidate = _last_id + 1
        _last_id = candidate
        return str(candidate)


def task_path(worker, task_id=None):
    if task_id is None:
        return f'tasks/{worker}'
    return f'tasks/{worker}/{task_id}'


def parse_task_path(path):
    """Split a task path into (worker, task_id); missing parts are None."""
    parts = [p for p in path.strip('/').split('/') if p]
    if not parts or parts[0] != 'tasks' or len(parts) > 3:
        raise ValueError(f'Not a task path: {path!r}')
    worker = parts[1] if len(parts) > 1 else None
    task_id = parts[2] if len(parts) > 2 else None
    return worker, task_id


def _normalize(path):
    worker, task_id = parse_task_path(path)
    if worker is None:
        return 'tasks'
    return task_path(worker, task_id)


def _affects(watched, changed):
    return changed == watched or changed.startswith(watched + '/')


class Subscription:
    """Handle returned by ``TaskStore.subscribe``; call ``cancel()`` to stop."""

    def __init__(self, path, on_change, on_cancel):
        self.path = path
        self.on_change = on_change
        self.active = True
        self._on_cancel = on_cancel

    def cancel(self):
        if not self.active:
            return
        self.active = False
        self._on_cancel(self)

    def __repr__(self):
        return f'<Subscription {self.path} active={self.active}>'


class TaskStore:
    """Base store with in-process change listeners."""

    def __init__(self):
        self._subscriptions = []
        self._lock = threading.Lock()

    def get(self, worker, task_id):
        raise NotImplementedError

    def snapshot(self, path='tasks'):
        raise NotImplementedError

    def create(self, worker, fields):
        raise NotImplementedError

    def update(self, path, fields):
        raise NotImplementedError

    def subscribe(self, path, on_change):
        subscription = Subscription(_normalize(path), on_change, self._unsubscribe)
        with self._lock:
            self._subscriptions.append(subscription)
        on_change(self.snapshot(subscription.path))
        return subscription

    def _unsubscribe(self, subscription):
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _notify(self, changed_path):
        with self._lock:
            watchers = [s for s in self._subscriptions if _affects(s.path, changed_path)]

        for subscription in watchers:
            try:
                subscription.on_change(self.snapshot(subscription.path))
            except Exception as e:
                logger.error(f'Task subscriber for {subscription.path} failed: {e}')


class SqlTaskStore(TaskStore):
    """Tasks kept in the application database through Flask-SQLAlchemy.

    Needs an application context for every call.
    """

    def get(self, worker, task_id):
        task = Task.query.filter_by(id=str(task_id), assigned_to=worker).first()
        return task.to_dict() if task else None

    def snapshot(self, path='tasks'):
        worker, task_id = parse_task_path(path)
        query = Task.query
        if worker:
            query = query.filter_by(assigned_to=worker)
        if task_id:
            query = query.filter_by(id=task_id)
        return [task.to_dict() for task in query.order_by(Task.id).all()]

    def create(self, worker, fields):
        coordinates = fields['coordinates']
        task = Task(
            id=next_task_id(),
            title=fields['title'],
            location=fields['location'],
            latitude=coordinates['latitude'],
            longitude=coordinates['longitude'],
            time=fields.get('time'),
            assigned_to=worker,
            assigned_by=fields['assigned_by'],
        )
        try:
            db.session.add(task)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        task_dict = task.to_dict()
        logger.info(f'Created task {task_path(worker, task.id)}')
        self._notify(task_path(worker, task.id))
        return task_dict

    def update(self, path, fields):
        worker, task_id = parse_task_path(path)
        if task_id is None:
            raise ValueError(f'update needs a single task path, got {path!r}')

        unknown = set(fields) - WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown task fields: {', '.join(sorted(unknown))}")

        task = Task.query.filter_by(id=task_id, assigned_to=worker).first()
        if task is None:
            raise TaskNotFound(path)

        for field, value in fields.items():
            setattr(task, field, value)
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        self._notify(_normalize(path))


def build_task_store(app):
    """Create the store selected by the TASK_STORE setting."""
    backend = app.config.get('TASK_STORE', 'sql')

    if backend == 'firebase':
        from dispatch.services.firebase import RealtimeDbTaskStore

        database_url = app.config.get('FIREBASE_DATABASE_URL')
        if not database_url:
            raise RuntimeError('TASK_STORE=firebase requires FIREBASE_DATABASE_URL')
        logger.info(f'Using Realtime Database task store at {database_url}')
        return RealtimeDbTaskStore(database_url, auth=app.config.get('FIREBASE_DATABASE_SECRET') or None)

    if backend != 'sql':
        raise RuntimeError(f'Unknown TASK_STORE: {backend}')
    return SqlTaskStore()


def get_task_store():
    return current_app.extensions['task_store']


def get_presence_workflow():
    return current_app.extensions['presence_workflow']
