"""
Tests for authentication, the worker directory and address suggestions.
"""

from datetime import datetime, timedelta

import jwt
import pytest

from conftest import fake


class TestRegister:
    """Tests for POST /api/auth/register"""

    def test_register_worker(self, client, db_session):
        username = fake.pystr(min_chars=8, max_chars=12)
        response = client.post('/api/auth/register', json={
            'username': username,
            'password': 'secret123',
        })

        assert response.status_code == 201
        data = response.get_json()
        assert data['token']
        assert data['user']['username'] == username
        assert data['user']['user_type'] == 'worker'

    def test_register_admin(self, client, db_session):
        response = client.post('/api/auth/register', json={
            'username': 'dispatcher_1',
            'password': 'secret123',
            'user_type': 'admin',
        })

        assert response.status_code == 201
        assert response.get_json()['user']['user_type'] == 'admin'

    @pytest.mark.parametrize('username', ['ab', 'has space', 'slash/name', 'x' * 31])
    def test_invalid_username(self, client, db_session, username):
        response = client.post('/api/auth/register', json={'username': username, 'password': 'secret123'})
        assert response.status_code == 400

    def test_short_password(self, client, db_session):
        response = client.post('/api/auth/register', json={'username': 'worker_9', 'password': '123'})
        assert response.status_code == 400

    def test_unknown_user_type(self, client, db_session):
        response = client.post('/api/auth/register', json={
            'username': 'worker_9',
            'password': 'secret123',
            'user_type': 'manager',
        })
        assert response.status_code == 400

    def test_duplicate_username(self, client, worker_user):
        response = client.post('/api/auth/register', json={
            'username': worker_user['username'],
            'password': 'secret123',
        })
        assert response.status_code == 409

    def test_missing_fields(self, client, db_session):
        response = client.post('/api/auth/register', json={'username': 'worker_9'})
        assert response.status_code == 400


class TestLogin:
    """Tests for POST /api/auth/login"""

    def test_login(self, client, worker_user):
        response = client.post('/api/auth/login', json={
            'username': worker_user['username'],
            'password': worker_user['password'],
        })

        assert response.status_code == 200
        assert response.get_json()['user']['username'] == worker_user['username']

    def test_wrong_password(self, client, worker_user):
        response = client.post('/api/auth/login', json={
            'username': worker_user['username'],
            'password': 'not-the-password',
        })
        assert response.status_code == 401
        assert response.get_json()['error'] == 'Invalid password'

    def test_unknown_user(self, client, db_session):
        response = client.post('/api/auth/login', json={'username': 'ghost', 'password': 'secret123'})
        assert response.status_code == 401

    def test_disabled_account(self, app, client, worker_user):
        from dispatch import db
        from dispatch.models import User

        with app.app_context():
            user = db.session.get(User, worker_user['id'])
            user.is_active = False
            db.session.commit()

        response = client.post('/api/auth/login', json={
            'username': worker_user['username'],
            'password': worker_user['password'],
        })
        assert response.status_code == 403


class TestTokens:
    """Tests for token handling on protected routes"""

    def test_me(self, client, worker_user, worker_headers):
        response = client.get('/api/auth/me', headers=worker_headers)

        assert response.status_code == 200
        assert response.get_json()['username'] == worker_user['username']

    def test_missing_token(self, client, db_session):
        response = client.get('/api/auth/me')
        assert response.status_code == 401
        assert response.get_json()['error'] == 'Token is missing'

    def test_invalid_token(self, client, db_session):
        response = client.get('/api/auth/me', headers={'Authorization': 'Bearer not-a-token'})
        assert response.status_code == 401
        assert response.get_json()['error'] == 'Token is invalid'

    def test_expired_token(self, app, client, worker_user):
        token = jwt.encode({
            'user_id': worker_user['id'],
            'exp': datetime.utcnow() - timedelta(minutes=1),
        }, app.config['JWT_SECRET_KEY'], algorithm='HS256')

        response = client.get('/api/auth/me', headers={'Authorization': f'Bearer {token}'})
        assert response.status_code == 401
        assert response.get_json()['error'] == 'Token has expired'


class TestWorkers:
    """Tests for GET /api/workers"""

    def test_admin_lists_workers(self, client, admin_headers, worker_user, second_worker):
        response = client.get('/api/workers', headers=admin_headers)

        assert response.status_code == 200
        data = response.get_json()
        assert data['total'] == 2
        assert {w['username'] for w in data['workers']} == {worker_user['username'], second_worker['username']}

    def test_worker_cannot_list(self, client, worker_headers):
        response = client.get('/api/workers', headers=worker_headers)
        assert response.status_code == 403


class TestSuggestions:
    """Tests for GET /api/geocode/suggestions"""

    def test_admin_gets_suggestions(self, client, admin_headers, monkeypatch):
        monkeypatch.setattr(
            'dispatch.routes.geocode.suggest_addresses',
            lambda query, limit: [{'label': f'{query} ({limit})'}],
        )

        response = client.get('/api/geocode/suggestions?q=Tverskaya&limit=3', headers=admin_headers)

        assert response.status_code == 200
        assert response.get_json()['suggestions'] == [{'label': 'Tverskaya (3)'}]

    def test_worker_cannot_use_suggestions(self, client, worker_headers):
        response = client.get('/api/geocode/suggestions?q=Tverskaya', headers=worker_headers)
        assert response.status_code == 403
