# troop_app/routes/badges.py
"""
Badge progress API
"""

from flask import jsonify

from troop_app.forms import BadgeDeliveryForm, BadgeSubmitForm
from troop_app.routes.helpers import acting_user, tenant_id, validated
from troop_app.services import BadgeWorkflow
from troop_app.utils.permissions import permission_required


def register_badge_routes(app):
    """Register badge workflow routes"""

    @app.route("/api/badges/pending", methods=["GET"])
    @permission_required("view_badges")
    def badges_pending():
        return jsonify({"success": True, "badges": BadgeWorkflow().pending(tenant_id())})

    @app.route("/api/badges/participant/<int:participant_id>", methods=["GET"])
    @permission_required("view_badges")
    def badges_for_participant(participant_id):
        workflow = BadgeWorkflow()
        organization_id = tenant_id()
        return jsonify(
            {
                "success": True,
                "participant_id": participant_id,
                "badges": [badge.to_dict() for badge in workflow.history(participant_id, organization_id)],
                "current_stars": workflow.current_stars(participant_id, organization_id),
            }
        )

    @app.route("/api/badges", methods=["POST"])
    @permission_required("manage_badges")
    def badges_submit():
        form = validated(BadgeSubmitForm())
        badge = BadgeWorkflow().submit(form.participant_id.data, form.to_fields(), tenant_id(), actor=acting_user())
        return jsonify({"success": True, "badge": badge.to_dict()}), 201

    @app.route("/api/badges/<int:badge_id>/approve", methods=["POST"])
    @permission_required("approve_badges")
    def badges_approve(badge_id):
        decision = BadgeWorkflow().approve(badge_id, acting_user(), organization_id=tenant_id())
        return jsonify({"success": True, **decision.to_dict()})

    @app.route("/api/badges/<int:badge_id>/reject", methods=["POST"])
    @permission_required("approve_badges")
    def badges_reject(badge_id):
        decision = BadgeWorkflow().reject(badge_id, acting_user(), organization_id=tenant_id())
        return jsonify({"success": True, **decision.to_dict()})

    @app.route("/api/badges/delivered", methods=["POST"])
    @permission_required("approve_badges")
    def badges_delivered():
        form = validated(BadgeDeliveryForm())
        badges = BadgeWorkflow().mark_delivered(form.badge_ids.data, acting_user(), tenant_id())
        return jsonify({"success": True, "delivered": [badge.id for badge in badges]})
