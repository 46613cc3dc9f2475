# troop_app/routes/attendance.py
"""
Attendance API
"""

from flask import jsonify, request

from troop_app.forms import AttendanceDateForm, AttendanceFilterForm, AttendanceUpdateForm, CarryForwardForm
from troop_app.models import SubjectType
from troop_app.routes.helpers import acting_user, json_body, tenant_id, validated
from troop_app.services import AttendanceTracker, PointLedger
from troop_app.utils.permissions import permission_required


def register_attendance_routes(app):
    """Register attendance routes"""

    @app.route("/api/attendance", methods=["GET"])
    @permission_required("view_attendance")
    def attendance_list():
        form = validated(AttendanceFilterForm(formdata=request.args))
        records = AttendanceTracker().records_for(
            tenant_id(), on_date=form.date.data, participant_id=form.participant_id.data
        )
        return jsonify(
            {
                "success": True,
                "date": form.date.data.isoformat() if form.date.data else None,
                "records": [record.to_dict() for record in records],
            }
        )

    @app.route("/api/attendance/dates", methods=["GET"])
    @permission_required("view_attendance")
    def attendance_dates():
        dates = AttendanceTracker().dates(tenant_id())
        return jsonify({"success": True, "dates": [day.isoformat() for day in dates]})

    @app.route("/api/attendance", methods=["POST"])
    @permission_required("manage_attendance")
    def attendance_update():
        form = validated(AttendanceUpdateForm())
        organization_id = tenant_id()
        tracker = AttendanceTracker()
        participant_ids = form.participant_id.data
        payload = json_body() or {}

        if len(participant_ids) == 1 and not isinstance(payload.get("participant_id"), list):
            change = tracker.set_status(
                participant_ids[0], form.date.data, form.status.data, organization_id, actor=acting_user()
            )
            total = PointLedger().total_for(SubjectType.PARTICIPANT, change.participant_id, organization_id)
            return jsonify({"success": True, **change.to_dict(), "total_points": total})

        changes = tracker.set_status_batch(
            participant_ids, form.date.data, form.status.data, organization_id, actor=acting_user()
        )
        return jsonify({"success": True, "results": [change.to_dict() for change in changes]})

    @app.route("/api/attendance/carry-forward", methods=["POST"])
    @permission_required("manage_attendance")
    def attendance_carry_forward():
        form = validated(CarryForwardForm())
        changes = AttendanceTracker().carry_forward(
            form.from_date.data, form.to_date.data, tenant_id(), actor=acting_user()
        )
        return jsonify({"success": True, "copied": len(changes), "results": [c.to_dict() for c in changes]})

    @app.route("/api/attendance", methods=["DELETE"])
    @permission_required("manage_attendance")
    def attendance_clear():
        form = validated(AttendanceDateForm(formdata=request.args))
        changes = AttendanceTracker().clear_date(form.date.data, tenant_id(), actor=acting_user())
        return jsonify({"success": True, "removed": len(changes), "results": [c.to_dict() for c in changes]})
