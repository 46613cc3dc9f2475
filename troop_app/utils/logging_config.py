# troop_app/utils/logging_config.py

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

from flask import g, has_request_context, request
from flask_login import current_user

TEXT_FORMAT = (
    "%(asctime)s %(levelname)s [%(name)s] "
    "[org=%(organization_id)s src=%(tenant_source)s user=%(user_id)s] %(message)s"
)


class RequestContextFilter(logging.Filter):
    """Stamp every record with the tenant and user of the current request"""

    def filter(self, record):
        record.organization_id = None
        record.tenant_source = None
        record.user_id = None
        record.path = None
        if has_request_context():
            resolution = getattr(g, "tenant_resolution", None)
            record.organization_id = getattr(g, "organization_id", None)
            record.tenant_source = resolution.source if resolution is not None else None
            record.path = request.path
            try:
                if current_user and current_user.is_authenticated:
                    record.user_id = current_user.get_id()
            except Exception:
                # The user loader may be unavailable while the request is torn down
                record.user_id = None
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line for log shippers"""

    def format(self, record):
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "organization_id": getattr(record, "organization_id", None),
            "tenant_source": getattr(record, "tenant_source", None),
            "user_id": getattr(record, "user_id", None),
            "path": getattr(record, "path", None),
            "module": record.module,
            "line": record.lineno,
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _build_formatter(log_format):
    if log_format == "json":
        return JSONFormatter()
    return logging.Formatter(TEXT_FORMAT)


def setup_logging(app):
    """Configure app.logger from the monitoring settings"""
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    formatter = _build_formatter(app.config.get("LOG_FORMAT", "json"))
    context_filter = RequestContextFilter()

    app.logger.handlers.clear()
    app.logger.setLevel(level)

    if app.config.get("ENABLE_CONSOLE_LOGGING", True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        console_handler.addFilter(context_filter)
        app.logger.addHandler(console_handler)

    if app.config.get("ENABLE_FILE_LOGGING", False):
        log_dir = app.config.get("LOG_DIR", "logs")
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, app.config.get("LOG_FILE_NAME", "troop_ledger.log")),
            maxBytes=app.config.get("LOG_FILE_MAX_BYTES", 10485760),
            backupCount=app.config.get("LOG_FILE_BACKUP_COUNT", 10),
        )
        file_handler.setFormatter(formatter)
        file_handler.addFilter(context_filter)
        app.logger.addHandler(file_handler)

    app.logger.info(
        f"Logging configured for {app.config.get('APP_NAME', 'Troop Ledger')} "
        f"(level={logging.getLevelName(level)}, format={app.config.get('LOG_FORMAT', 'json')})"
    )
    return app.logger
