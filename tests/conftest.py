"""
Pytest configuration and fixtures for testing the dispatch API.
"""

import math
import os
import sys
import pytest
from faker import Faker

# Add the parent directory to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

os.environ.pop('REDIS_URL', None)

from dispatch import create_app, db  # noqa: E402
from dispatch.constants import EARTH_RADIUS_M  # noqa: E402
from dispatch.models.user import User  # noqa: E402

fake = Faker()

# Red Square, Moscow
TASK_LATITUDE = 55.7539
TASK_LONGITUDE = 37.6208


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    os.environ['FLASK_ENV'] = 'testing'
    os.environ['JWT_SECRET_KEY'] = 'test-secret-key-for-testing'

    app = create_app('testing')

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client for each test function."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create a fresh database session for each test."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        yield db.session
        db.session.rollback()


@pytest.fixture
def task_store(app):
    return app.extensions['task_store']


@pytest.fixture
def presence_workflow(app, monkeypatch):
    """The app's workflow with fast progress so tests don't wait."""
    workflow = app.extensions['presence_workflow']
    monkeypatch.setattr(workflow, 'progress_interval', 0.01)
    monkeypatch.setattr(workflow, 'progress_reset_delay', 0)
    return workflow


def point_north(meters):
    """Coordinates `meters` due north of the test task (exact along a meridian)."""
    return TASK_LATITUDE + math.degrees(meters / EARTH_RADIUS_M), TASK_LONGITUDE


def fix_at(meters, accuracy):
    """JSON location fix `meters` from the test task."""
    latitude, longitude = point_north(meters)
    return {'latitude': latitude, 'longitude': longitude, 'accuracy': accuracy}


def _create_user(password='testpassword123', **overrides):
    """Helper to create a user with sensible defaults."""
    data = {
        'username': (fake.user_name() + fake.pystr(min_chars=4, max_chars=6))[:30].replace('.', '_'),
        'user_type': 'worker',
    }
    data.update(overrides)
    user = User(**data)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return {
        'id': user.id,
        'username': user.username,
        'user_type': user.user_type,
        'password': password,
    }


@pytest.fixture
def admin_user(app, db_session):
    """Create an admin."""
    with app.app_context():
        return _create_user(user_type='admin')


@pytest.fixture
def worker_user(app, db_session):
    """Create a worker."""
    with app.app_context():
        return _create_user(user_type='worker')


@pytest.fixture
def second_worker(app, db_session):
    """Create another worker for access checks."""
    with app.app_context():
        return _create_user(user_type='worker', password='testpassword456')


def _get_token(client, username, password):
    """Login and return JWT token."""
    resp = client.post('/api/auth/login', json={
        'username': username,
        'password': password,
    })
    data = resp.get_json()
    if not data or not data.get('token'):
        raise RuntimeError(f"Login failed: status={resp.status_code}, body={data}")
    return data['token']


@pytest.fixture
def admin_token(client, admin_user):
    return _get_token(client, admin_user['username'], admin_user['password'])


@pytest.fixture
def worker_token(client, worker_user):
    return _get_token(client, worker_user['username'], worker_user['password'])


@pytest.fixture
def admin_headers(admin_token):
    """Authentication headers for the admin."""
    return {'Authorization': f'Bearer {admin_token}'}


@pytest.fixture
def worker_headers(worker_token):
    """Authentication headers for the worker."""
    return {'Authorization': f'Bearer {worker_token}'}


@pytest.fixture
def second_worker_headers(client, second_worker):
    token = _get_token(client, second_worker['username'], second_worker['password'])
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def test_task(app, db_session, task_store, admin_user, worker_user):
    """Create a task assigned to the worker, located at TASK_LATITUDE/TASK_LONGITUDE."""
    with app.app_context():
        return task_store.create(worker_user['username'], {
            'title': fake.sentence(nb_words=3),
            'location': 'Red Square, Moscow',
            'coordinates': {'latitude': TASK_LATITUDE, 'longitude': TASK_LONGITUDE},
            'time': '09:30',
            'assigned_by': admin_user['username'],
        })


@pytest.fixture
def mock_geocoder(monkeypatch):
    """Geocode every address to the test task coordinates."""
    calls = []

    def fake_geocode(address):
        calls.append(address)
        return {
            'latitude': TASK_LATITUDE,
            'longitude': TASK_LONGITUDE,
            'display_name': address,
        }

    monkeypatch.setattr('dispatch.routes.tasks.crud.geocode_address', fake_geocode)
    return calls
