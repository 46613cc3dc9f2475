# app.py

import logging
import os

from dotenv import load_dotenv
from flask import Flask, current_app, jsonify
from flask_login import LoginManager
from sqlalchemy import event

# Load environment variables from .env file first
load_dotenv()

# Module imports after load_dotenv() - E402 is intentional
from config import DevelopmentConfig, ProductionConfig, TestingConfig  # noqa: E402
from config.monitoring import (  # noqa: E402
    DevelopmentMonitoringConfig,
    ProductionMonitoringConfig,
    TestingMonitoringConfig,
)
from config.validation import validate_and_exit  # noqa: E402
from troop_app.middleware.org_context import init_org_context_middleware  # noqa: E402
from troop_app.models import User, db  # noqa: E402
from troop_app.routes import init_routes  # noqa: E402
from troop_app.utils.error_handler import init_error_handlers  # noqa: E402
from troop_app.utils.logging_config import setup_logging  # noqa: E402
from troop_app.utils.monitoring import init_monitoring  # noqa: E402

logger = logging.getLogger(__name__)

app = Flask(__name__)

# Validate environment variables (only in production)
flask_env = os.environ.get("FLASK_ENV", "development")
if flask_env == "production":
    validate_and_exit(flask_env)

# Load configuration based on the environment
if flask_env == "production":
    app.config.from_object(ProductionConfig)
    app.config.from_object(ProductionMonitoringConfig)
elif flask_env == "testing":
    app.config.from_object(TestingConfig)
    app.config.from_object(TestingMonitoringConfig)
else:
    app.config.from_object(DevelopmentConfig)
    app.config.from_object(DevelopmentMonitoringConfig)

# Initialize extensions
db.init_app(app)
login_manager = LoginManager()
login_manager.init_app(app)

# Register login manager in app extensions for testing
app.extensions["login_manager"] = login_manager

# Initialize logging, health checks and metrics
setup_logging(app)
init_error_handlers(app)
init_monitoring(app)

# Resolve the tenant for every request
init_org_context_middleware(app)


def _configure_sqlite_connection_factory(*, enable_foreign_keys: bool):
    """Return a connection hook applying concurrency-friendly pragmas."""

    def _configure_sqlite_connection(dbapi_connection, connection_record):  # pragma: no cover - instrumentation
        # pysqlite's own transaction handling breaks SAVEPOINT; BEGIN is emitted on the "begin" event
        dbapi_connection.isolation_level = None
        try:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            if enable_foreign_keys:
                cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
        except Exception as exc:
            logger.warning("Failed to apply SQLite PRAGMAs: %s", exc)

    return _configure_sqlite_connection


def _begin_sqlite_transaction(conn):
    # Write lock taken at BEGIN; busy_timeout then queues concurrent writers
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def install_sqlite_hooks(engine, *, enable_foreign_keys: bool = True):
    """Apply pragmas and explicit transaction control to a SQLite engine once."""
    if getattr(engine, "_sqlite_pragmas_configured", False):
        return
    event.listen(engine, "connect", _configure_sqlite_connection_factory(enable_foreign_keys=enable_foreign_keys))
    event.listen(engine, "begin", _begin_sqlite_transaction)
    engine._sqlite_pragmas_configured = True  # type: ignore[attr-defined]


with app.app_context():
    engine = db.engine
    if engine.url.drivername.startswith("sqlite"):
        install_sqlite_hooks(engine, enable_foreign_keys=not app.config.get("TESTING", False))
    # Create the database tables only if not in testing mode
    if not app.config.get("TESTING", False):
        db.create_all()


# User loader callback for Flask-Login
@login_manager.user_loader
def load_user(user_id):
    try:
        return db.session.get(User, int(user_id))
    except (ValueError, TypeError):
        # Invalid user_id format
        return None
    except Exception as e:
        # Handle any other database errors gracefully
        current_app.logger.error(f"Error loading user {user_id}: {str(e)}")
        return None


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"success": False, "error": "Authentication required"}), 401


# Initialize routes
init_routes(app)


if __name__ == "__main__":
    # Use production-ready server configuration
    port = int(os.environ.get("PORT", 5000))
    app.run(host="0.0.0.0", port=port)
