# troop_app/models/organization.py

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .base import BaseModel, db


class Organization(BaseModel):
    """Model for representing organizations (tenants)"""

    __tablename__ = "organizations"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    slug = db.Column(db.String(100), unique=True, nullable=False, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    # Relationships
    users = db.relationship("UserOrganization", back_populates="organization", cascade="all, delete-orphan")
    domains = db.relationship("OrganizationDomain", back_populates="organization", cascade="all, delete-orphan")
    settings = db.relationship("OrganizationSetting", back_populates="organization", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Organization {self.name}>"

    @staticmethod
    def find_by_slug(slug):
        """Find organization by slug with error handling"""
        try:
            return Organization.query.filter_by(slug=slug).first()
        except SQLAlchemyError as e:
            current_app.logger.error(f"Database error finding organization by slug {slug}: {str(e)}")
            return None

    @staticmethod
    def find_by_id(org_id):
        """Find organization by ID with error handling"""
        try:
            return db.session.get(Organization, org_id)
        except SQLAlchemyError as e:
            current_app.logger.error(f"Database error finding organization by id {org_id}: {str(e)}")
            return None


class OrganizationDomain(BaseModel):
    """Hostname to organization mapping used for tenant resolution"""

    __tablename__ = "organization_domains"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    domain = db.Column(db.String(255), unique=True, nullable=False, index=True)

    organization = db.relationship("Organization", back_populates="domains")

    def __repr__(self):
        return f"<OrganizationDomain {self.domain} -> {self.organization_id}>"


class OrganizationSetting(BaseModel):
    """Per-organization configuration blob keyed by setting name"""

    __tablename__ = "organization_settings"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False)
    setting_key = db.Column(db.String(100), nullable=False, index=True)
    setting_value = db.Column(db.Text, nullable=True)  # JSON string

    organization = db.relationship("Organization", back_populates="settings")

    __table_args__ = (db.UniqueConstraint("organization_id", "setting_key", name="_org_setting_uc"),)

    def __repr__(self):
        return f"<OrganizationSetting org={self.organization_id} key={self.setting_key}>"

    @staticmethod
    def get_raw(organization_id, setting_key, session=None):
        """Return the stored text for a setting, or None when the row is absent.

        Database errors propagate so callers can decide how to degrade.
        """
        session = session or db.session
        row = (
            session.query(OrganizationSetting)
            .filter_by(organization_id=organization_id, setting_key=setting_key)
            .first()
        )
        return row.setting_value if row else None

    @staticmethod
    def set_raw(organization_id, setting_key, value, session=None):
        """Insert or update a setting without committing"""
        session = session or db.session
        row = (
            session.query(OrganizationSetting)
            .filter_by(organization_id=organization_id, setting_key=setting_key)
            .first()
        )
        if row:
            row.setting_value = value
        else:
            row = OrganizationSetting(
                organization_id=organization_id, setting_key=setting_key, setting_value=value
            )
            session.add(row)
        return row
