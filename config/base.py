# config/base.py
import os
from datetime import timedelta

DEFAULT_HOSTFULLY_BASE_URL = "https://api.hostfully.com/api/v3.2"


def _coerce_bool(value, default=False):
    """Convert environment-style truthy/falsey values to bool."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    value_str = str(value).strip().lower()
    if value_str in {"1", "true", "yes", "on"}:
        return True
    if value_str in {"0", "false", "no", "off"}:
        return False
    return default


def _bounded_int(value, default, *, minimum=None, maximum=None):
    """
    Parse an integer environment value and clamp it into the given bounds.

    Falls back to ``default`` when the value is missing or not an integer.
    """
    if value is None or str(value).strip() == "":
        number = default
    else:
        try:
            number = int(str(value).strip())
        except ValueError:
            number = default
    if minimum is not None:
        number = max(minimum, number)
    if maximum is not None:
        number = min(maximum, number)
    return number


def _bounded_float(value, default, *, minimum=0.0):
    try:
        number = float(value) if value not in (None, "") else default
    except ValueError:
        number = default
    return max(minimum, number)


class Config:
    # SECRET_KEY must be set via environment variable for security
    # Generate with: python -c "import secrets; print(secrets.token_hex(32))"
    _flask_env = os.environ.get("FLASK_ENV", "development")
    _is_testing = _flask_env == "testing"
    _is_production = _flask_env == "production"

    SECRET_KEY = os.environ.get("SECRET_KEY")

    # Only require SECRET_KEY in production mode
    if not SECRET_KEY and _is_production:
        raise ValueError(
            "SECRET_KEY environment variable is required in production. "
            'Generate with: python -c "import secrets; print(secrets.token_hex(32))"'
        )

    if not SECRET_KEY and not _is_testing:
        import warnings

        warnings.warn(
            "SECRET_KEY not set. Using default for development only. "
            "This is insecure and should not be used in production. "
            "Set SECRET_KEY environment variable or generate with: "
            'python -c "import secrets; print(secrets.token_hex(32))"',
            UserWarning,
        )
        SECRET_KEY = "dev-secret-key-change-in-production"

    # Set a default for testing (will be overridden by TestingConfig)
    if not SECRET_KEY:
        SECRET_KEY = "test-secret-key-placeholder"

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {}

    # Importer configuration
    IMPORTER_ENABLED = _coerce_bool(os.environ.get("IMPORTER_ENABLED"), default=True)
    IMPORTER_MEDIA_DIR = os.environ.get("IMPORTER_MEDIA_DIR")
    IMPORTER_METRICS_ENV = os.environ.get("IMPORTER_METRICS_ENV", "sandbox")

    # Hostfully connection defaults. Values saved from the admin settings form
    # are layered over these at runtime.
    HOSTFULLY_API_KEY = os.environ.get("HOSTFULLY_API_KEY", "")
    HOSTFULLY_AGENCY_UID = os.environ.get("HOSTFULLY_AGENCY_UID", "")
    HOSTFULLY_BASE_URL = os.environ.get("HOSTFULLY_BASE_URL", DEFAULT_HOSTFULLY_BASE_URL).rstrip("/")
    HOSTFULLY_MAX_PHOTOS = _bounded_int(os.environ.get("HOSTFULLY_MAX_PHOTOS"), 8, minimum=0)
    HOSTFULLY_BULK_LIMIT = _bounded_int(os.environ.get("HOSTFULLY_BULK_LIMIT"), 10, minimum=1)
    HOSTFULLY_API_PAGE_LIMIT = _bounded_int(
        os.environ.get("HOSTFULLY_API_PAGE_LIMIT"), 100, minimum=1, maximum=100
    )
    HOSTFULLY_ALLOW_ENRICH_API = _coerce_bool(os.environ.get("HOSTFULLY_ALLOW_ENRICH_API"), default=False)
    HOSTFULLY_AMENITIES_CACHE_HOURS = _bounded_int(
        os.environ.get("HOSTFULLY_AMENITIES_CACHE_HOURS"), 24, minimum=1, maximum=168
    )
    HOSTFULLY_VERBOSE_LOG = _coerce_bool(os.environ.get("HOSTFULLY_VERBOSE_LOG"), default=False)
    HOSTFULLY_AMENITY_CHANNEL_POLICY = os.environ.get("HOSTFULLY_AMENITY_CHANNEL_POLICY", "any_true")
    HOSTFULLY_REQUEST_TIMEOUT = _bounded_int(os.environ.get("HOSTFULLY_REQUEST_TIMEOUT"), 30, minimum=1)
    HOSTFULLY_DOWNLOAD_TIMEOUT = _bounded_int(os.environ.get("HOSTFULLY_DOWNLOAD_TIMEOUT"), 20, minimum=1)
    # Pause between per-listing amenity lookups during the fallback catalog sync
    HOSTFULLY_THROTTLE_SECONDS = _bounded_float(os.environ.get("HOSTFULLY_THROTTLE_SECONDS"), 0.15)

    # Session configuration
    PERMANENT_SESSION_LIFETIME = timedelta(days=7)
    SESSION_COOKIE_SECURE = False  # Set to True in production with HTTPS
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    # CSRF protection
    WTF_CSRF_ENABLED = True


class DevelopmentConfig(Config):
    DEBUG = True
    # Get the project root directory (parent of config directory)
    _config_dir = os.path.dirname(os.path.abspath(__file__))
    _project_root = os.path.dirname(_config_dir)
    instance_path = os.path.join(_project_root, "instance")

    if not os.path.exists(instance_path):
        os.makedirs(instance_path, exist_ok=True)

    # Windows needs forward slashes in the SQLite URI
    db_path = os.path.join(instance_path, "hostfully_importer_dev.db")
    db_path_normalized = db_path.replace("\\", "/")
    db_uri = f"sqlite:///{db_path_normalized}"

    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", db_uri)
    SQLALCHEMY_ECHO = False
    if SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": 5,
            }
        }
    else:
        SQLALCHEMY_ENGINE_OPTIONS = {}


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get("SECRET_KEY", "test-secret-key-for-testing-only")
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"  # In-memory database for testing
    WTF_CSRF_ENABLED = False
    SQLALCHEMY_ECHO = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "connect_args": {
            "check_same_thread": False,
        }
    }
    IMPORTER_ENABLED = True
    HOSTFULLY_API_KEY = "test-api-key"
    HOSTFULLY_AGENCY_UID = "agency-test"
    HOSTFULLY_BASE_URL = "https://api.hostfully.test/api/v3.2"
    HOSTFULLY_THROTTLE_SECONDS = 0.0


class ProductionConfig(Config):
    DEBUG = False
    uri = os.environ.get("DATABASE_URL")
    if uri and uri.startswith("postgres://"):
        uri = uri.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = uri
    SQLALCHEMY_ECHO = False
    SESSION_COOKIE_SECURE = True  # Secure cookies in production
