# troop_app/utils/monitoring.py

from datetime import datetime, timezone

from flask import Response, current_app, jsonify
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from troop_app.models import db


class HealthChecker:
    """Database-backed health endpoints"""

    def __init__(self, app=None):
        self.app = app
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.app = app
        health_endpoint = app.config.get("HEALTH_CHECK_ENDPOINT", "/health")
        app.add_url_rule(health_endpoint, "health", self.basic_health_check)
        app.add_url_rule(f"{health_endpoint}/ready", "health_ready", self.readiness_check)
        app.add_url_rule(f"{health_endpoint}/live", "health_live", self.liveness_check)

    def _timestamp(self):
        return datetime.now(timezone.utc).isoformat()

    def basic_health_check(self):
        try:
            db.session.execute(text("SELECT 1"))
            return (
                jsonify(
                    {
                        "status": "healthy",
                        "app": current_app.config.get("APP_NAME", "Troop Ledger"),
                        "version": current_app.config.get("APP_VERSION", "1.0.0"),
                        "timestamp": self._timestamp(),
                    }
                ),
                200,
            )
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Health check database error: {str(e)}")
            return jsonify({"status": "unhealthy", "error": "database unavailable"}), 503
        except Exception as e:
            current_app.logger.error(f"Health check failed: {str(e)}", exc_info=True)
            return jsonify({"status": "unhealthy", "error": "health check failed"}), 503

    def readiness_check(self):
        try:
            db.session.execute(text("SELECT 1"))
            return jsonify({"status": "ready", "timestamp": self._timestamp()}), 200
        except Exception as e:
            db.session.rollback()
            current_app.logger.warning(f"Readiness check failed: {str(e)}")
            return jsonify({"status": "not_ready", "error": "database unavailable"}), 503

    def liveness_check(self):
        return jsonify({"status": "alive", "timestamp": self._timestamp()}), 200


def metrics_view():
    return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)


def init_monitoring(app):
    """Register health checks and, when enabled, the Prometheus scrape endpoint"""
    health_checker = HealthChecker(app)
    if app.config.get("MONITORING_ENABLED", False):
        app.add_url_rule(app.config.get("METRICS_ENDPOINT", "/metrics"), "metrics", metrics_view)
        app.logger.info(f"Metrics exposed at {app.config.get('METRICS_ENDPOINT', '/metrics')}")
    return health_checker
