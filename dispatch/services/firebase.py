"""Firebase Realtime Database task store.

Talks to the database over its REST API so the backend and the mobile
clients share one tree of tasks:

    {databaseURL}/tasks/{worker}/{taskId}.json

Documents use the camelCase field names the mobile clients read
(``isOnSite``, ``lastChecked``, ...); conversion happens here and nowhere
else. Live updates come from the REST streaming endpoint (server-sent
events), read on a background thread per subscription.
"""

import logging
import threading
from datetime import datetime

import requests

from dispatch.services.task_store import (
    TaskStore,
    TaskNotFound,
    Subscription,
    WRITABLE_FIELDS,
    next_task_id,
    task_path,
    parse_task_path,
)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10  # seconds
STREAM_RETRY_SECONDS = 5

# snake_case field -> document key; fields not listed keep their name
DOCUMENT_FIELDS = {
    'assigned_by': 'assignedBy',
    'is_on_site': 'isOnSite',
    'last_checked': 'lastChecked',
    'last_location': 'lastLocation',
    'completed_at': 'completedAt',
    'completed_location': 'completedLocation',
    'created_at': 'createdAt',
}
TASK_FIELDS = {document_key: field for field, document_key in DOCUMENT_FIELDS.items()}


def _encode(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _encode(item) for key, item in value.items()}
    return value


def to_document(fields):
    """Convert task fields to the document layout stored in the database."""
    return {DOCUMENT_FIELDS.get(field, field): _encode(value) for field, value in fields.items()}


def from_document(worker, task_id, document):
    """Convert a stored document back to a task dict."""
    task = {TASK_FIELDS.get(key, key): value for key, value in (document or {}).items()}
    coordinates = task.get('coordinates') or {}
    task['coordinates'] = {
        'latitude': coordinates.get('latitude'),
        'longitude': coordinates.get('longitude'),
    }
    task['id'] = str(task_id)
    task['assigned_to'] = worker

    # The database drops null values, so absent means "not yet"
    task.setdefault('is_on_site', False)
    task.setdefault('last_checked', None)
    task.setdefault('last_location', None)
    task.setdefault('completed', False)
    task.setdefault('completed_at', None)
    task.setdefault('completed_location', None)
    return task


class RealtimeDbTaskStore(TaskStore):
    """Task store backed by a Firebase Realtime Database.

    Args:
        database_url: e.g. ``https://<project>-default-rtdb.<region>.firebasedatabase.app``
        auth: database secret or ID token, sent as the ``auth`` query parameter
        session: optional requests.Session (tests pass a mock)
    """

    def __init__(self, database_url, auth=None, session=None, timeout=REQUEST_TIMEOUT):
        super().__init__()
        self.database_url = database_url.rstrip('/')
        self.auth = auth
        self.session = session or requests.Session()
        self.timeout = timeout

    def url(self, path):
        return f"{self.database_url}/{path.strip('/')}.json"

    def params(self):
        return {'auth': self.auth} if self.auth else {}

    def _request(self, method, path, payload=None):
        response = self.session.request(
            method,
            self.url(path),
            params=self.params(),
            json=payload,
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    def get(self, worker, task_id):
        document = self._request('GET', task_path(worker, task_id))
        return from_document(worker, task_id, document) if document else None

    def snapshot(self, path='tasks'):
        worker, task_id = parse_task_path(path)
        if task_id is not None:
            task = self.get(worker, task_id)
            return [task] if task else []

        if worker is not None:
            documents = self._request('GET', task_path(worker)) or {}
            return [from_document(worker, key, doc) for key, doc in sorted(documents.items())]

        tree = self._request('GET', 'tasks') or {}
        return [
            from_document(owner, key, doc)
            for owner, documents in sorted(tree.items())
            for key, doc in sorted((documents or {}).items())
        ]

    def create(self, worker, fields):
        task_id = next_task_id()
        document = to_document({
            'title': fields['title'],
            'location': fields['location'],
            'coordinates': {
                'latitude': fields['coordinates']['latitude'],
                'longitude': fields['coordinates']['longitude'],
            },
            'time': fields.get('time'),
            'assigned_by': fields['assigned_by'],
            'is_on_site': False,
            'completed': False,
            'created_at': datetime.utcnow(),
        })
        self._request('PUT', task_path(worker, task_id), document)
        logger.info(f'Created task {task_path(worker, task_id)} in Realtime Database')
        return from_document(worker, task_id, document)

    def update(self, path, fields):
        worker, task_id = parse_task_path(path)
        if task_id is None:
            raise ValueError(f'update needs a single task path, got {path!r}')

        unknown = set(fields) - WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown task fields: {', '.join(sorted(unknown))}")

        # PATCH on a missing node would create a partial task
        if self.get(worker, task_id) is None:
            raise TaskNotFound(path)

        self._request('PATCH', task_path(worker, task_id), to_document(fields))

    def subscribe(self, path, on_change):
        worker, task_id = parse_task_path(path)
        normalized = 'tasks' if worker is None else task_path(worker, task_id)

        stream = None
        subscription = Subscription(normalized, on_change, lambda sub: stream.stop())
        stream = EventStream(self, subscription)
        stream.start()
        return subscription


class EventStream:
    """Reads the streaming endpoint for one subscription until stopped.

    Every ``put``/``patch`` event triggers a fresh snapshot of the watched
    path, so subscribers always receive the whole current subtree.
    """

    def __init__(self, store, subscription):
        self.store = store
        self.subscription = subscription
        self._stop = threading.Event()
        self._response = None
        self._thread = None

    def start(self):
        self._thread = threading.Thread(
            target=self._run,
            name=f'rtdb-stream:{self.subscription.path}',
            daemon=True,
        )
        self._thread.start()

    def stop(self):
        self._stop.set()
        response = self._response
        if response is not None:
            response.close()

    def _run(self):
        while not self._stop.is_set():
            try:
                with self.store.session.get(
                    self.store.url(self.subscription.path),
                    params=self.store.params(),
                    headers={'Accept': 'text/event-stream'},
                    stream=True,
                    timeout=(self.store.timeout, None),
                ) as response:
                    response.raise_for_status()
                    self._response = response
                    self.consume(response.iter_lines(decode_unicode=True))
            except requests.RequestException as e:
                if self._stop.is_set():
                    break
                logger.warning(f'Realtime Database stream for {self.subscription.path} dropped: {e}')
            finally:
                self._response = None

            if self._stop.wait(STREAM_RETRY_SECONDS):
                break

    def consume(self, lines):
        """Parse server-sent event lines and dispatch complete events."""
        event = None
        for line in lines:
            if self._stop.is_set():
                return
            if not line:
                continue
            if line.startswith('event:'):
                event = line[len('event:'):].strip()
            elif line.startswith('data:'):
                self.handle(event, line[len('data:'):].strip())
                event = None

    def handle(self, event, data):
        if event in ('put', 'patch'):
            try:
                tasks = self.store.snapshot(self.subscription.path)
                if not self._stop.is_set():
                    self.subscription.on_change(tasks)
            except Exception as e:
                logger.error(f'Task subscriber for {self.subscription.path} failed: {e}')
        elif event in ('cancel', 'auth_revoked'):
            logger.error(f'Realtime Database closed stream for {self.subscription.path}: {event} {data}')
            self._stop.set()
