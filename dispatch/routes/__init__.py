"""Routes package for the dispatch application."""


def register_routes(app):
    """Register all route blueprints with the application."""
    from .auth import auth_bp
    from .workers import workers_bp
    from .geocode import geocode_bp
    from .tasks import tasks_bp

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(workers_bp, url_prefix='/api/workers')
    app.register_blueprint(geocode_bp, url_prefix='/api/geocode')
    app.register_blueprint(tasks_bp, url_prefix='/api/tasks')
