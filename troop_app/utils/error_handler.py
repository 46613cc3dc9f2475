# troop_app/utils/error_handler.py

from flask import current_app, g, jsonify, request
from werkzeug.exceptions import HTTPException

from troop_app.models import db
from troop_app.services.errors import LedgerError


def _request_context():
    return {
        "endpoint": request.endpoint,
        "method": request.method,
        "path": request.path,
        "organization_id": getattr(g, "organization_id", None),
    }


def init_error_handlers(app):
    """Register JSON error handlers; SQL text and tracebacks never reach clients"""

    @app.errorhandler(LedgerError)
    def handle_ledger_error(error):
        if error.status_code >= 500:
            current_app.logger.error(f"Ledger operation failed: {error.message} {_request_context()}")
        else:
            current_app.logger.warning(
                f"Request rejected ({error.status_code}): {error.message} {_request_context()}"
            )
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        if not request.path.startswith("/api"):
            return error
        return jsonify({"success": False, "error": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        current_app.logger.error(f"Unhandled exception: {str(error)} {_request_context()}", exc_info=True)
        return jsonify({"success": False, "error": "An internal error occurred"}), 500
