"""Task routes package.

This package organizes task-related routes into logical submodules:
- crud: create, list and read tasks
- workflow: on-site confirmation and completion
- helpers: shared filtering and access checks
"""

from flask import Blueprint

tasks_bp = Blueprint('tasks', __name__)

# Import and register all route modules
from dispatch.routes.tasks import crud  # noqa: E402,F401
from dispatch.routes.tasks import workflow  # noqa: E402,F401
