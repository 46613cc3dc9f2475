# config/base.py
import os
from datetime import timedelta


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


def _coerce_int(value, default):
    """Parse an integer environment value, keeping the default on bad input."""
    if value is None or str(value).strip() == "":
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def _parse_name_list(value, default=()):
    """
    Parse a comma-separated list of names while keeping order and removing duplicates.

    Returns:
        tuple[str, ...]: Normalized upper-case names.
    """
    if not value:
        return tuple(default)

    seen = set()
    names = []
    for raw_item in value.split(","):
        item = raw_item.strip().upper()
        if not item or item in seen:
            continue
        seen.add(item)
        names.append(item)
    return tuple(names) or tuple(default)


class Config:
    # SECRET_KEY must be set via environment variable for security
    # Generate with: python -c "import secrets; print(secrets.token_hex(32))"
    # For development, we allow a default but warn about it
    # For production, it must be set via environment variable
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

    # For development, use a default but it's not secure
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

    # Tenant resolution
    # Header value is trusted as-is; hostname mapping comes from organization_domains
    TENANT_HEADER_NAME = os.environ.get("TENANT_HEADER_NAME", "X-Organization-ID")
    DEFAULT_ORGANIZATION_ID = _coerce_int(os.environ.get("DEFAULT_ORGANIZATION_ID"), 1)

    # Roles allowed to approve or reject badge submissions within an organization
    BADGE_APPROVER_ROLES = _parse_name_list(
        os.environ.get("BADGE_APPROVER_ROLES"), default=("ORG_ADMIN", "LEADER")
    )

    # Leaderboard limits
    LEADERBOARD_DEFAULT_LIMIT = _coerce_int(os.environ.get("LEADERBOARD_DEFAULT_LIMIT"), 10)
    LEADERBOARD_MAX_LIMIT = max(1, _coerce_int(os.environ.get("LEADERBOARD_MAX_LIMIT"), 100))

    # Session configuration
    PERMANENT_SESSION_LIFETIME = timedelta(days=7)
    SESSION_COOKIE_SECURE = False  # Set to True in production with HTTPS
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    # CSRF protection (JSON API forms opt out individually)
    WTF_CSRF_ENABLED = True


class DevelopmentConfig(Config):
    DEBUG = True
    # Use instance folder for database to avoid conflicts
    # Get the project root directory (parent of config directory)
    _config_dir = os.path.dirname(os.path.abspath(__file__))
    _project_root = os.path.dirname(_config_dir)
    instance_path = os.path.join(_project_root, "instance")

    # Ensure instance folder exists
    if not os.path.exists(instance_path):
        os.makedirs(instance_path, exist_ok=True)

    # Use absolute path for SQLite - Windows needs forward slashes in URI
    db_path = os.path.join(instance_path, "troop_ledger_dev.db")
    db_path_normalized = db_path.replace("\\", "/")
    db_uri = f"sqlite:///{db_path_normalized}"

    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", db_uri)
    SQLALCHEMY_ECHO = _coerce_bool(os.environ.get("SQLALCHEMY_ECHO"), default=False)
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
    # Override SECRET_KEY for testing - tests will set their own
    SECRET_KEY = os.environ.get("SECRET_KEY", "test-secret-key-for-testing-only")
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"  # In-memory database for testing
    WTF_CSRF_ENABLED = False
    SQLALCHEMY_ECHO = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "connect_args": {
            "check_same_thread": False,
            "timeout": 5,
        }
    }
    DEFAULT_ORGANIZATION_ID = 1


class ProductionConfig(Config):
    DEBUG = False
    uri = os.environ.get("DATABASE_URL")  # Get the Heroku DATABASE_URL
    if uri and uri.startswith("postgres://"):
        uri = uri.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = uri
    SQLALCHEMY_ECHO = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": _coerce_int(os.environ.get("DB_POOL_SIZE"), 10),
        "max_overflow": _coerce_int(os.environ.get("DB_MAX_OVERFLOW"), 20),
    }
    SESSION_COOKIE_SECURE = True  # Secure cookies in production
