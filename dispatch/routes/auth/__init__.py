"""Auth routes package.

- core: registration, login and the current-user endpoint
"""

from flask import Blueprint

auth_bp = Blueprint('auth', __name__)

# Import all route modules (registers routes on auth_bp)
from dispatch.routes.auth import core  # noqa: E402,F401
