# troop_app/models/participant.py
"""
Participant and group membership models.

These rows are maintained by the surrounding CRUD layer; the ledger only reads
them to check organization membership and to attribute points to a group.
"""

from .base import BaseModel, db


class Participant(BaseModel):
    """A tracked youth member; organization and group membership are separate relations"""

    __tablename__ = "participants"

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)

    organizations = db.relationship(
        "ParticipantOrganization", back_populates="participant", cascade="all, delete-orphan"
    )
    group_links = db.relationship("ParticipantGroup", back_populates="participant", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Participant {self.first_name} {self.last_name}>"

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"


class ParticipantOrganization(BaseModel):
    """Participant enrollment in an organization"""

    __tablename__ = "participant_organizations"

    id = db.Column(db.Integer, primary_key=True)
    participant_id = db.Column(db.Integer, db.ForeignKey("participants.id"), nullable=False, index=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    participant = db.relationship("Participant", back_populates="organizations")

    __table_args__ = (db.UniqueConstraint("participant_id", "organization_id", name="_participant_org_uc"),)

    def __repr__(self):
        return f"<ParticipantOrganization participant={self.participant_id} org={self.organization_id}>"


class Group(BaseModel):
    """A collection of participants within one organization"""

    __tablename__ = "groups"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)

    members = db.relationship("ParticipantGroup", back_populates="group", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Group {self.name}>"


class ParticipantGroup(BaseModel):
    """Zero-or-one group per participant per organization"""

    __tablename__ = "participant_groups"

    id = db.Column(db.Integer, primary_key=True)
    participant_id = db.Column(db.Integer, db.ForeignKey("participants.id"), nullable=False)
    group_id = db.Column(db.Integer, db.ForeignKey("groups.id"), nullable=False, index=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False)
    is_leader = db.Column(db.Boolean, default=False, nullable=False)
    is_second_leader = db.Column(db.Boolean, default=False, nullable=False)

    participant = db.relationship("Participant", back_populates="group_links")
    group = db.relationship("Group", back_populates="members")

    __table_args__ = (db.UniqueConstraint("participant_id", "organization_id", name="_participant_group_org_uc"),)

    def __repr__(self):
        return f"<ParticipantGroup participant={self.participant_id} group={self.group_id}>"
