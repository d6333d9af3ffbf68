"""
Tests for Socket.IO events: authentication, task subscriptions and
device-driven presence checks.
"""

import pytest

from conftest import fix_at
from dispatch import socketio
from dispatch.presence import LocationFix, SocketLocationProvider


def _events(client, name):
    return [event['args'][0] for event in client.get_received() if event['name'] == name]


@pytest.fixture
def connect(app):
    clients = []

    def _connect(token):
        client = socketio.test_client(app, auth={'token': token})
        clients.append(client)
        return client

    yield _connect

    for client in clients:
        if client.is_connected():
            client.disconnect()


@pytest.fixture
def device(monkeypatch):
    """Stand-in for the worker's phone answering location requests."""
    state = {'permission': True, 'fix': None, 'modes': []}

    async def request_permission(self):
        return state['permission']

    async def get_current_position(self, mode):
        state['modes'].append(mode)
        return LocationFix.from_dict(state['fix'])

    monkeypatch.setattr(SocketLocationProvider, 'request_permission', request_permission)
    monkeypatch.setattr(SocketLocationProvider, 'get_current_position', get_current_position)
    return state


class TestConnection:
    """Tests for connect authentication"""

    def test_connect_with_token(self, connect, worker_user, worker_token):
        client = connect(worker_token)

        assert client.is_connected()
        assert _events(client, 'connected') == [{'username': worker_user['username']}]

    def test_connect_without_token(self, app, db_session):
        client = socketio.test_client(app)
        assert not client.is_connected()

    def test_connect_with_bad_token(self, connect, db_session):
        assert not connect('not-a-token').is_connected()


class TestTaskSubscriptions:
    """Tests for subscribe_tasks / unsubscribe_tasks"""

    def test_worker_receives_own_tasks(self, connect, worker_token, test_task):
        client = connect(worker_token)
        client.get_received()

        client.emit('subscribe_tasks', {})

        changes = _events(client, 'tasks_changed')
        assert len(changes) == 1
        assert changes[0]['path'] == f"tasks/{test_task['assigned_to']}"
        assert [t['id'] for t in changes[0]['tasks']] == [test_task['id']]

    def test_worker_cannot_watch_others(self, connect, worker_token, second_worker):
        client = connect(worker_token)
        client.get_received()

        client.emit('subscribe_tasks', {'worker': second_worker['username']})

        assert _events(client, 'error') == [{'message': 'Access denied'}]
        assert _events(client, 'tasks_changed') == []

    def test_admin_sees_changes_live(self, app, connect, admin_token, test_task, task_store):
        client = connect(admin_token)
        client.emit('subscribe_tasks', {})
        client.get_received()

        with app.app_context():
            task_store.update(f"tasks/{test_task['assigned_to']}/{test_task['id']}", {'is_on_site': True})

        changes = _events(client, 'tasks_changed')
        assert len(changes) == 1
        assert changes[0]['path'] == 'tasks'
        assert changes[0]['tasks'][0]['is_on_site'] is True

    def test_unsubscribe_stops_updates(self, app, connect, worker_token, test_task, task_store):
        client = connect(worker_token)
        client.emit('subscribe_tasks', {})
        client.emit('unsubscribe_tasks', {})
        client.get_received()

        with app.app_context():
            task_store.update(f"tasks/{test_task['assigned_to']}/{test_task['id']}", {'is_on_site': True})

        assert _events(client, 'tasks_changed') == []


class TestPresenceEvents:
    """Tests for confirm_presence / complete_task over the socket"""

    def test_confirm_presence(self, connect, worker_token, test_task, device, presence_workflow):
        device['fix'] = fix_at(40, 15)
        client = connect(worker_token)
        client.get_received()

        client.emit('confirm_presence', {'task_id': test_task['id']})
        received = client.get_received()

        results = [e['args'][0] for e in received if e['name'] == 'presence_result']
        progress = [e['args'][0]['progress'] for e in received if e['name'] == 'presence_progress']
        assert results[0]['ok'] is True
        assert results[0]['on_site'] is True
        assert device['modes'] == ['balanced']
        assert progress[0] == 0
        assert progress[-1] == 0
        assert 100 in progress

    def test_confirm_then_complete(self, connect, worker_token, test_task, device, presence_workflow):
        device['fix'] = fix_at(40, 15)
        client = connect(worker_token)
        client.emit('confirm_presence', {'task_id': test_task['id']})
        client.get_received()

        client.emit('complete_task', {'task_id': test_task['id']})

        results = _events(client, 'completion_result')
        assert results[0]['ok'] is True
        assert results[0]['message'] == 'Task completed successfully!'
        assert device['modes'] == ['balanced', 'high']

    def test_permission_refused_on_device(self, connect, worker_token, test_task, device, presence_workflow):
        device['permission'] = False
        client = connect(worker_token)
        client.get_received()

        client.emit('confirm_presence', {'task_id': test_task['id']})

        assert _events(client, 'presence_result')[0]['error'] == 'permission_denied'

    def test_unknown_task(self, connect, worker_token, device):
        client = connect(worker_token)
        client.get_received()

        client.emit('complete_task', {'task_id': '123'})

        assert _events(client, 'completion_result')[0]['error'] == 'not_found'

    def test_task_id_required(self, connect, worker_token, device):
        client = connect(worker_token)
        client.get_received()

        client.emit('confirm_presence', {})

        assert _events(client, 'presence_result')[0]['error'] == 'invalid_request'

    def test_other_workers_task_not_found(self, client, connect, second_worker, test_task, device):
        response = client.post('/api/auth/login', json={
            'username': second_worker['username'],
            'password': second_worker['password'],
        })
        other = connect(response.get_json()['token'])
        other.get_received()

        other.emit('confirm_presence', {'task_id': test_task['id']})

        assert _events(other, 'presence_result')[0]['error'] == 'not_found'
