# troop_app/models/ledger/__init__.py
"""
Ledger models: point events, attendance, honors and badge progress.
"""

from .enums import AttendanceStatus, BadgeStatus, PointSource, StarType, SubjectType
from .models import AttendanceRecord, BadgeProgress, Honor, PointEvent

__all__ = [
    "AttendanceRecord",
    "AttendanceStatus",
    "BadgeProgress",
    "BadgeStatus",
    "Honor",
    "PointEvent",
    "PointSource",
    "StarType",
    "SubjectType",
]
