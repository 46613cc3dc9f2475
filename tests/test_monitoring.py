"""Tests for health checks, metrics and JSON error handling"""

import json
import logging
from unittest.mock import patch

from sqlalchemy.exc import SQLAlchemyError

from config.monitoring import LedgerMonitoring
from troop_app.utils.logging_config import JSONFormatter, RequestContextFilter
from troop_app.utils.monitoring import HealthChecker, metrics_view


class TestHealthChecks:
    def test_health_endpoint(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"

    def test_health_check_database_error(self, app):
        health_checker = HealthChecker()
        with patch("troop_app.utils.monitoring.db.session.execute") as mock_execute:
            mock_execute.side_effect = SQLAlchemyError("Database connection lost")
            response, status_code = health_checker.basic_health_check()

        assert status_code == 503
        assert response.get_json() == {"status": "unhealthy", "error": "database unavailable"}

    def test_readiness_check_database_error(self, app):
        with patch("troop_app.utils.monitoring.db.session.execute") as mock_execute:
            mock_execute.side_effect = SQLAlchemyError("Database not ready")
            response, status_code = HealthChecker().readiness_check()
        assert status_code == 503
        assert response.get_json()["status"] == "not_ready"

    def test_liveness(self, client):
        assert client.get("/health/live").get_json()["status"] == "alive"


class TestMetrics:
    def test_metrics_exposition_includes_ledger_counters(self, app):
        LedgerMonitoring.TENANT_RESOLUTION_COUNTER.labels(source="default").inc()
        response = metrics_view()
        body = response.get_data(as_text=True)
        assert "tenant_resolution_total" in body
        assert "point_events_appended_total" in body or "ledger_operation_seconds" in body

    def test_metrics_route_disabled_in_testing(self, client):
        assert client.get("/metrics").status_code == 404


class TestErrorHandlers:
    def test_unexpected_error_is_opaque(self, leader_client):
        with patch("troop_app.routes.points.PointLedger.group_totals", side_effect=RuntimeError("SELECT secret")):
            response = leader_client.get("/api/points")
        assert response.status_code == 500
        assert response.get_json() == {"success": False, "error": "An internal error occurred"}

    def test_transaction_failure_hides_sql(self, leader_client):
        with patch(
            "troop_app.services.point_ledger.PointLedger.append", side_effect=SQLAlchemyError("INSERT INTO points")
        ):
            response = leader_client.post(
                "/api/attendance", json={"participant_id": 57, "status": "present", "date": "2024-10-04"}
            )
        assert response.status_code == 500
        assert "INSERT" not in response.get_data(as_text=True)


class TestLogging:
    def test_json_formatter_includes_context(self, app):
        record = logging.LogRecord("app", logging.WARNING, __file__, 1, "fallback used", None, None)
        with app.test_request_context("/api/points"):
            from flask import g

            g.organization_id = 3
            RequestContextFilter().filter(record)
        payload = json.loads(JSONFormatter().format(record))
        assert payload["message"] == "fallback used"
        assert payload["organization_id"] == 3
        assert payload["path"] == "/api/points"

    def test_filter_outside_request(self):
        record = logging.LogRecord("app", logging.INFO, __file__, 1, "startup", None, None)
        assert RequestContextFilter().filter(record) is True
        assert record.organization_id is None
