# flask_app/routes/__init__.py
"""
Application routes package
"""

from .admin_hostfully import admin_hostfully_blueprint
from .auth import register_auth_routes
from .main import register_main_routes


def init_routes(app):
    """Initialize all application routes"""
    register_main_routes(app)
    register_auth_routes(app)
    if admin_hostfully_blueprint.name not in app.blueprints:
        app.register_blueprint(admin_hostfully_blueprint)
