# troop_app/models/__init__.py
"""
Database models package
"""

from .base import BaseModel, db
from .ledger import (
    AttendanceRecord,
    AttendanceStatus,
    BadgeProgress,
    BadgeStatus,
    Honor,
    PointEvent,
    PointSource,
    StarType,
    SubjectType,
)
from .organization import Organization, OrganizationDomain, OrganizationSetting
from .participant import Group, Participant, ParticipantGroup, ParticipantOrganization
from .role import Permission, Role, RolePermission, UserOrganization
from .user import User

__all__ = [
    "db",
    "BaseModel",
    "User",
    "Organization",
    "OrganizationDomain",
    "OrganizationSetting",
    "Role",
    "Permission",
    "RolePermission",
    "UserOrganization",
    # Participant models
    "Participant",
    "ParticipantOrganization",
    "Group",
    "ParticipantGroup",
    # Ledger models
    "PointEvent",
    "AttendanceRecord",
    "Honor",
    "BadgeProgress",
    # Ledger enums
    "AttendanceStatus",
    "BadgeStatus",
    "PointSource",
    "StarType",
    "SubjectType",
]
