from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_socketio import SocketIO
import logging
import os
from dotenv import load_dotenv

load_dotenv()

db = SQLAlchemy()
limiter = Limiter(key_func=get_remote_address)
socketio = SocketIO()

logger = logging.getLogger(__name__)


def create_app(config_name='development'):
    app = Flask(__name__)

    logging.basicConfig(level=os.getenv('LOG_LEVEL', 'INFO'))

    # Config
    if config_name == 'testing':
        app.config['TESTING'] = True
        app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite://'
        app.config['RATELIMIT_ENABLED'] = False
    else:
        app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv(
            'DATABASE_URL',
            'sqlite:///dispatch.db'
        )

    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = int(os.getenv('JWT_ACCESS_TOKEN_EXPIRES', 86400))

    # Task store: 'sql' keeps tasks next to users, 'firebase' talks to a Realtime Database
    app.config['TASK_STORE'] = os.getenv('TASK_STORE', 'sql')
    app.config['FIREBASE_DATABASE_URL'] = os.getenv('FIREBASE_DATABASE_URL', '')
    app.config['FIREBASE_DATABASE_SECRET'] = os.getenv('FIREBASE_DATABASE_SECRET', '')

    app.config['GEOCODER_URL'] = os.getenv('GEOCODER_URL', 'https://nominatim.openstreetmap.org/search')
    app.config['GEOCODER_USER_AGENT'] = os.getenv('GEOCODER_USER_AGENT', 'FieldDispatch/1.0')
    app.config['GEOCODER_COUNTRY_CODES'] = os.getenv('GEOCODER_COUNTRY_CODES', '')
    app.config['GEOCODER_LANGUAGE'] = os.getenv('GEOCODER_LANGUAGE', 'en')

    app.config['LOCATION_TIMEOUT_SECONDS'] = float(os.getenv('LOCATION_TIMEOUT_SECONDS', 15))

    # Initialize extensions
    db.init_app(app)
    limiter.init_app(app)
    CORS(app, origins=os.getenv('CORS_ORIGINS', '*'))
    socketio.init_app(
        app,
        cors_allowed_origins=os.getenv('CORS_ORIGINS', '*'),
        async_mode=os.getenv('SOCKETIO_ASYNC_MODE', 'threading'),
    )

    with app.app_context():
        from dispatch import models  # noqa: F401 - register tables
        try:
            db.create_all()
        except Exception as e:
            logger.warning(f"Could not create database tables: {e}")

    from dispatch.services.task_store import build_task_store
    from dispatch.presence import PresenceWorkflow, TaskActivity
    app.extensions['task_store'] = build_task_store(app)
    app.extensions['presence_workflow'] = PresenceWorkflow(
        app.extensions['task_store'],
        activity=TaskActivity(),
        location_timeout=app.config['LOCATION_TIMEOUT_SECONDS'],
    )

    # Register routes
    from dispatch.routes import register_routes
    register_routes(app)

    from dispatch.socket_events import register_socket_events
    register_socket_events(socketio)

    # Health check
    @app.route('/health', methods=['GET'])
    def health():
        return {'status': 'ok'}, 200

    return app
