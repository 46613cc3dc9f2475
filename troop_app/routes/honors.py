# troop_app/routes/honors.py
"""
Honors API
"""

from flask import jsonify, request

from troop_app.forms import HonorFilterForm, HonorForm
from troop_app.models import SubjectType
from troop_app.routes.helpers import acting_user, json_body, tenant_id, validated
from troop_app.services import HonorAwardService, PointLedger, ValidationFailure
from troop_app.utils.permissions import permission_required


def register_honor_routes(app):
    """Register honor routes"""

    @app.route("/api/honors", methods=["GET"])
    @permission_required("view_honors")
    def honors_list():
        form = validated(HonorFilterForm(formdata=request.args))
        service = HonorAwardService()
        organization_id = tenant_id()
        honors = service.honors_for(
            organization_id,
            on_date=form.date.data,
            participant_id=form.participant_id.data,
            start_date=form.start_date.data,
            end_date=form.end_date.data,
        )
        return jsonify(
            {
                "success": True,
                "honors": [honor.to_dict() for honor in honors],
                "dates": [day.isoformat() for day in service.dates(organization_id)],
            }
        )

    @app.route("/api/honors/summary", methods=["GET"])
    @permission_required("view_honors")
    def honors_summary():
        return jsonify({"success": True, "participants": HonorAwardService().summary(tenant_id())})

    @app.route("/api/honors", methods=["POST"])
    @permission_required("award_honors")
    def honors_award():
        payload = json_body()
        organization_id = tenant_id()
        service = HonorAwardService()

        if isinstance(payload, list):
            results = service.award_batch(payload, organization_id, actor=acting_user())
            return jsonify({"success": True, "results": [result.to_dict() for result in results]})

        if not isinstance(payload, dict):
            raise ValidationFailure("Expected a JSON object or array of honors")

        form = validated(HonorForm())
        result = service.award(
            form.participant_id.data,
            form.date.data,
            organization_id,
            reason=form.reason.data or None,
            actor=acting_user(),
        )
        total = PointLedger().total_for(SubjectType.PARTICIPANT, result.participant_id, organization_id)
        return jsonify({"success": True, **result.to_dict(), "total_points": total})
