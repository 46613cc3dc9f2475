"""Tests for JSON API request forms"""

from datetime import date

from werkzeug.datastructures import MultiDict

from troop_app.forms import AttendanceUpdateForm, BadgeSubmitForm, CarryForwardForm, PointTotalForm


class TestAttendanceUpdateForm:
    def test_list_of_participants(self, app):
        with app.test_request_context():
            form = AttendanceUpdateForm(
                formdata=MultiDict([("participant_id", 57), ("participant_id", 58), ("status", "late"), ("date", "2024-10-04")])
            )
            assert form.validate()
            assert form.participant_id.data == [57, 58]
            assert form.date.data == date(2024, 10, 4)

    def test_comma_separated_participants(self, app):
        with app.test_request_context():
            form = AttendanceUpdateForm(formdata=MultiDict({"participant_id": "57, 58", "status": "present", "date": "2024-10-04"}))
            assert form.validate()
            assert form.participant_id.data == [57, 58]

    def test_rejects_bad_ids_and_status(self, app):
        with app.test_request_context():
            form = AttendanceUpdateForm(formdata=MultiDict({"participant_id": "abc", "status": "asleep", "date": "04/10/2024"}))
            assert not form.validate()
            assert set(form.errors) == {"participant_id", "status", "date"}


class TestOtherForms:
    def test_carry_forward_dates_must_differ(self, app):
        with app.test_request_context():
            form = CarryForwardForm(formdata=MultiDict({"from_date": "2024-10-04", "to_date": "2024-10-04"}))
            assert not form.validate()
            assert "to_date" in form.errors

    def test_point_total_requires_subject_id(self, app):
        with app.test_request_context():
            assert not PointTotalForm(formdata=MultiDict({"subject_type": "group"})).validate()
            assert PointTotalForm(formdata=MultiDict({"subject_type": "organization"})).validate()

    def test_badge_fields(self, app):
        with app.test_request_context():
            form = BadgeSubmitForm(formdata=MultiDict({"participant_id": "57", "territory": "Santé", "level": "2"}))
            assert form.validate()
            fields = form.to_fields()
            assert fields["level"] == 2
            assert fields["star_type"] is None
            assert fields["date_obtained"] is None
