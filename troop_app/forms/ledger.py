# troop_app/forms/ledger.py
"""
Request forms for the ledger JSON API.

Flask-WTF reads JSON bodies directly; query-string filters are bound by passing
``formdata=request.args``. CSRF is off because these endpoints take JSON only.
"""

from flask_wtf import FlaskForm
from wtforms import DateField, Field, IntegerField, SelectField, StringField, TextAreaField
from wtforms.validators import InputRequired, Length, NumberRange, Optional, ValidationError

from troop_app.models import AttendanceStatus, SubjectType

DATE_FORMAT = "%Y-%m-%d"


class IntegerListField(Field):
    """Accepts a single id, a JSON list of ids or a comma separated string"""

    def _value(self):
        return ",".join(str(value) for value in self.data or [])

    def process_formdata(self, valuelist):
        self.data = []
        for raw in valuelist:
            for part in str(raw).split(","):
                part = part.strip()
                if not part:
                    continue
                try:
                    self.data.append(int(part))
                except ValueError:
                    self.data = []
                    raise ValueError(self.gettext("Not a valid list of integers."))


def _require_ids(form, field):
    if not field.data:
        raise ValidationError("At least one id is required.")


class JSONForm(FlaskForm):
    class Meta:
        csrf = False


class AttendanceUpdateForm(JSONForm):
    participant_id = IntegerListField("Participants", validators=[_require_ids])
    status = SelectField(
        "Status",
        choices=[(status.value, status.value.title()) for status in AttendanceStatus],
        validators=[InputRequired(message="Status is required.")],
    )
    date = DateField("Date", format=DATE_FORMAT, validators=[InputRequired(message="Date is required.")])


class AttendanceFilterForm(JSONForm):
    date = DateField("Date", format=DATE_FORMAT, validators=[Optional()])
    participant_id = IntegerField("Participant", validators=[Optional()])


class AttendanceDateForm(JSONForm):
    date = DateField("Date", format=DATE_FORMAT, validators=[InputRequired(message="Date is required.")])


class CarryForwardForm(JSONForm):
    from_date = DateField("From", format=DATE_FORMAT, validators=[InputRequired(message="from_date is required.")])
    to_date = DateField("To", format=DATE_FORMAT, validators=[InputRequired(message="to_date is required.")])

    def validate_to_date(self, field):
        if self.from_date.data and field.data == self.from_date.data:
            raise ValidationError("to_date must differ from from_date.")


class HonorForm(JSONForm):
    participant_id = IntegerField("Participant", validators=[InputRequired(message="Participant is required.")])
    date = DateField("Date", format=DATE_FORMAT, validators=[InputRequired(message="Date is required.")])
    reason = TextAreaField("Reason", validators=[Optional(), Length(max=2000)])


class HonorFilterForm(JSONForm):
    date = DateField("Date", format=DATE_FORMAT, validators=[Optional()])
    participant_id = IntegerField("Participant", validators=[Optional()])
    start_date = DateField("Start", format=DATE_FORMAT, validators=[Optional()])
    end_date = DateField("End", format=DATE_FORMAT, validators=[Optional()])


class LeaderboardForm(JSONForm):
    type = SelectField(
        "Type",
        choices=[("individuals", "Individuals"), ("groups", "Groups")],
        default="individuals",
        validators=[Optional()],
    )
    limit = IntegerField("Limit", validators=[Optional(), NumberRange(min=1)])


class PointTotalForm(JSONForm):
    subject_type = SelectField(
        "Subject type",
        choices=[(subject.value, subject.value.title()) for subject in SubjectType],
        validators=[InputRequired(message="subject_type is required.")],
    )
    subject_id = IntegerField("Subject", validators=[Optional()])

    def validate_subject_type(self, field):
        if field.data != SubjectType.ORGANIZATION.value and self.subject_id.data is None:
            raise ValidationError("subject_id is required for participant and group totals.")


class BadgeSubmitForm(JSONForm):
    participant_id = IntegerField("Participant", validators=[InputRequired(message="Participant is required.")])
    territory = StringField(
        "Territory",
        validators=[InputRequired(message="Territory is required."), Length(max=200)],
    )
    section = StringField("Section", validators=[Optional(), Length(max=50)])
    objective = TextAreaField("Objective", validators=[Optional()])
    description = TextAreaField("Description", validators=[Optional()])
    level = IntegerField("Level", validators=[Optional(), NumberRange(min=1)])
    star_type = StringField("Star type", validators=[Optional()])
    date_obtained = DateField("Date obtained", format=DATE_FORMAT, validators=[Optional()])

    def to_fields(self):
        return {
            "territory": self.territory.data,
            "section": self.section.data or None,
            "objective": self.objective.data or None,
            "description": self.description.data or None,
            "level": self.level.data,
            "star_type": self.star_type.data or None,
            "date_obtained": self.date_obtained.data,
        }


class BadgeDeliveryForm(JSONForm):
    badge_ids = IntegerListField("Badges", validators=[_require_ids])


class PointHistoryForm(JSONForm):
    participant_id = IntegerField("Participant", validators=[Optional()])
    group_id = IntegerField("Group", validators=[Optional()])
    limit = IntegerField("Limit", validators=[Optional(), NumberRange(min=1)])
