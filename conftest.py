# conftest.py

import os

import pytest
from werkzeug.security import generate_password_hash

# Set testing environment BEFORE importing app so app.py picks TestingConfig
os.environ["FLASK_ENV"] = "testing"

# Now import app and other modules after environment is set
from app import app as flask_app  # noqa: E402
from flask_app.models import AdminLog, User, db  # noqa: E402


@pytest.fixture(scope="function")
def app(tmp_path):
    """Create and configure a test Flask application"""
    flask_app.config.update(
        {
            "TESTING": True,
            "WTF_CSRF_ENABLED": False,
            "SECRET_KEY": "test-secret-key-for-testing-only",
            "MONITORING_ENABLED": False,
            "ENABLE_FILE_LOGGING": False,
            "ENABLE_CONSOLE_LOGGING": False,
            "LOG_LEVEL": "WARNING",
            "IMPORTER_ENABLED": True,
            "IMPORTER_MEDIA_DIR": str(tmp_path / "media"),
            "HOSTFULLY_API_KEY": "test-api-key",
            "HOSTFULLY_AGENCY_UID": "agency-test",
            "HOSTFULLY_BASE_URL": "https://api.hostfully.test/api/v3.2",
            "HOSTFULLY_THROTTLE_SECONDS": 0.0,
        }
    )
    flask_app.jinja_env.cache = {}  # Clear any cached templates before running a test

    with flask_app.app_context():
        # Drop any existing tables to ensure clean state
        db.drop_all()
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()

    # Never leak a fake HTTP session into the next test
    flask_app.extensions.get("importer", {}).pop("http_session", None)


@pytest.fixture(autouse=True)
def app_context(app):
    """Automatically provide app context for all tests"""
    with app.app_context():
        yield


@pytest.fixture
def client(app):
    """Create a test client for the Flask application"""
    return app.test_client()


@pytest.fixture
def runner(app):
    """Create a test CLI runner for the Flask application"""
    return app.test_cli_runner()


@pytest.fixture
def test_user():
    """Create a regular (non super admin) user fixture"""
    user = User(
        username="testuser",
        email="test@example.com",
        password_hash=generate_password_hash("testpass123"),
        first_name="Test",
        last_name="User",
        is_active=True,
        is_super_admin=False,
    )
    return user


@pytest.fixture
def admin_user():
    """Create an admin user fixture"""
    user = User(
        username="admin",
        email="admin@example.com",
        password_hash=generate_password_hash("adminpass123"),
        first_name="Admin",
        last_name="User",
        is_super_admin=True,
    )
    return user


@pytest.fixture
def inactive_user():
    """Create an inactive user fixture"""
    user = User(
        username="inactiveuser",
        email="inactive@example.com",
        password_hash=generate_password_hash("userpass123"),
        is_active=False,
    )
    return user


@pytest.fixture
def logged_in_user(client, test_user, app):
    """Fixture that logs in a user and returns the client"""
    with app.app_context():
        db.session.add(test_user)
        db.session.commit()

        client.post("/login", data={"username": "testuser", "password": "testpass123"})

        yield client, test_user


@pytest.fixture
def logged_in_admin(client, admin_user, app):
    """Fixture that logs in an admin user and returns the client"""
    with app.app_context():
        db.session.add(admin_user)
        db.session.commit()

        client.post("/login", data={"username": "admin", "password": "adminpass123"})

        yield client, admin_user


@pytest.fixture
def admin_logs():
    """Return a callable listing the audit actions recorded so far"""

    def _actions():
        return [entry.action for entry in AdminLog.query.order_by(AdminLog.id).all()]

    return _actions


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
