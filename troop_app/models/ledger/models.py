# troop_app/models/ledger/models.py

from sqlalchemy import CheckConstraint, Enum, Index, event

from ..base import BaseModel, db
from .enums import AttendanceStatus, BadgeStatus, PointSource, StarType


class PointEvent(BaseModel):
    """Immutable signed point entry; corrections are new rows with the opposite sign"""

    __tablename__ = "points"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False)
    participant_id = db.Column(db.Integer, db.ForeignKey("participants.id"), nullable=True)
    group_id = db.Column(db.Integer, db.ForeignKey("groups.id"), nullable=True)
    value = db.Column(db.Integer, nullable=False)
    effective_date = db.Column(db.Date, nullable=False, index=True)
    source = db.Column(Enum(PointSource, name="point_source_enum"), nullable=False, index=True)
    reference_id = db.Column(db.Integer, nullable=True)  # honor or badge id, when applicable
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "participant_id IS NOT NULL OR group_id IS NOT NULL", name="ck_points_has_subject"
        ),
        Index("idx_points_org_participant", "organization_id", "participant_id"),
        Index("idx_points_org_group", "organization_id", "group_id"),
    )

    def __repr__(self):
        return (
            f"<PointEvent org={self.organization_id} participant={self.participant_id} "
            f"group={self.group_id} value={self.value:+d}>"
        )

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "participant_id": self.participant_id,
            "group_id": self.group_id,
            "value": self.value,
            "effective_date": self.effective_date.isoformat() if self.effective_date else None,
            "source": self.source.value if self.source else None,
            "reference_id": self.reference_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@event.listens_for(PointEvent, "before_update")
@event.listens_for(PointEvent, "before_delete")
def _reject_point_event_change(mapper, connection, target):
    raise ValueError(f"Point events are append-only; append a correction instead of changing {target!r}")


class AttendanceRecord(BaseModel):
    """Current attendance status for one participant on one date"""

    __tablename__ = "attendance"

    id = db.Column(db.Integer, primary_key=True)
    participant_id = db.Column(db.Integer, db.ForeignKey("participants.id"), nullable=False)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False)
    date = db.Column(db.Date, nullable=False, index=True)
    status = db.Column(Enum(AttendanceStatus, name="attendance_status_enum"), nullable=False)

    __table_args__ = (
        db.UniqueConstraint("participant_id", "organization_id", "date", name="_attendance_participant_org_date_uc"),
        Index("idx_attendance_org_date", "organization_id", "date"),
    )

    def __repr__(self):
        return f"<AttendanceRecord participant={self.participant_id} {self.date} {self.status.value}>"

    def to_dict(self):
        return {
            "id": self.id,
            "participant_id": self.participant_id,
            "organization_id": self.organization_id,
            "date": self.date.isoformat(),
            "status": self.status.value,
        }


class Honor(BaseModel):
    """An honor; the row's existence is the awarded state"""

    __tablename__ = "honors"

    id = db.Column(db.Integer, primary_key=True)
    participant_id = db.Column(db.Integer, db.ForeignKey("participants.id"), nullable=False)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False)
    date = db.Column(db.Date, nullable=False, index=True)
    reason = db.Column(db.Text, nullable=True)
    awarded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        db.UniqueConstraint("participant_id", "date", "organization_id", name="_honor_participant_date_org_uc"),
    )

    def __repr__(self):
        return f"<Honor participant={self.participant_id} {self.date}>"

    def to_dict(self):
        return {
            "id": self.id,
            "participant_id": self.participant_id,
            "organization_id": self.organization_id,
            "date": self.date.isoformat(),
            "reason": self.reason or "",
        }


class BadgeProgress(BaseModel):
    """One submitted star/level awaiting or past review"""

    __tablename__ = "badge_progress"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    participant_id = db.Column(db.Integer, db.ForeignKey("participants.id"), nullable=False, index=True)

    # Territory/objective fields
    territory = db.Column(db.String(200), nullable=False)
    section = db.Column(db.String(50), nullable=True)
    objective = db.Column(db.Text, nullable=True)
    description = db.Column(db.Text, nullable=True)
    level = db.Column(db.Integer, nullable=False, default=1)
    star_type = db.Column(Enum(StarType, name="star_type_enum"), nullable=False, default=StarType.PROIE)
    date_obtained = db.Column(db.Date, nullable=True)

    # Workflow
    status = db.Column(
        Enum(BadgeStatus, name="badge_status_enum"),
        default=BadgeStatus.PENDING,
        nullable=False,
        index=True,
    )
    submitted_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approval_date = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("idx_badge_participant_territory", "organization_id", "participant_id", "territory"),)

    def __repr__(self):
        return f"<BadgeProgress {self.territory} L{self.level} ({self.status.value})>"

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "participant_id": self.participant_id,
            "territory": self.territory,
            "section": self.section,
            "objective": self.objective,
            "description": self.description,
            "level": self.level,
            "star_type": self.star_type.value if self.star_type else None,
            "date_obtained": self.date_obtained.isoformat() if self.date_obtained else None,
            "status": self.status.value,
            "approved_by": self.approved_by,
            "approval_date": self.approval_date.isoformat() if self.approval_date else None,
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
        }
