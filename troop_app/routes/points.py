# troop_app/routes/points.py
"""
Points and point rules API
"""

from flask import jsonify, request

from troop_app.forms import LeaderboardForm, PointHistoryForm, PointTotalForm
from troop_app.routes.helpers import acting_user, json_body, tenant_id, validated
from troop_app.services import PointLedger, PointRulesProvider, ValidationFailure
from troop_app.utils.permissions import permission_required


def register_point_routes(app):
    """Register points and point rules routes"""

    @app.route("/api/points", methods=["GET"])
    @permission_required("view_points")
    def points_overview():
        ledger = PointLedger()
        organization_id = tenant_id()
        return jsonify(
            {
                "success": True,
                "groups": ledger.group_totals(organization_id),
                "participants": ledger.participant_totals(organization_id),
            }
        )

    @app.route("/api/points/leaderboard", methods=["GET"])
    @permission_required("view_points")
    def points_leaderboard():
        form = validated(LeaderboardForm(formdata=request.args))
        kind = form.type.data or "individuals"
        leaders = PointLedger().leaderboard(tenant_id(), kind=kind, limit=form.limit.data)
        return jsonify({"success": True, "type": kind, "leaderboard": leaders})

    @app.route("/api/points/total", methods=["GET"])
    @permission_required("view_points")
    def points_total():
        form = validated(PointTotalForm(formdata=request.args))
        total = PointLedger().total_for(form.subject_type.data, form.subject_id.data, tenant_id())
        return jsonify(
            {
                "success": True,
                "subject_type": form.subject_type.data,
                "subject_id": form.subject_id.data,
                "total_points": total,
            }
        )

    @app.route("/api/points/history", methods=["GET"])
    @permission_required("view_points")
    def points_history():
        form = validated(PointHistoryForm(formdata=request.args))
        limit = min(form.limit.data or 50, app.config.get("LEADERBOARD_MAX_LIMIT", 100))
        events = PointLedger().history(
            tenant_id(), participant_id=form.participant_id.data, group_id=form.group_id.data, limit=limit
        )
        return jsonify({"success": True, "events": [event.to_dict() for event in events]})

    @app.route("/api/points", methods=["POST"])
    @permission_required("manage_points")
    def points_update():
        payload = json_body()
        if isinstance(payload, dict):
            payload = payload.get("updates")
        if not isinstance(payload, list):
            raise ValidationFailure("Expected a JSON array of point updates")

        user = acting_user()
        results = PointLedger().apply_updates(payload, tenant_id(), created_by=getattr(user, "id", None))
        return jsonify({"success": True, "results": results})

    @app.route("/api/point-rules", methods=["GET"])
    @permission_required("view_points")
    def point_rules_get():
        resolution = PointRulesProvider().get_rules(tenant_id())
        return jsonify(
            {
                "success": True,
                "rules": resolution.rules.to_dict(),
                "used_default": resolution.used_default,
                "reason": resolution.reason,
                "fallback_keys": list(resolution.fallback_keys),
            }
        )

    @app.route("/api/point-rules", methods=["PUT"])
    @permission_required("manage_point_rules")
    def point_rules_put():
        rules = PointRulesProvider().save_rules(tenant_id(), json_body())
        return jsonify({"success": True, "rules": rules.to_dict()})
