# troop_app/models/ledger/enums.py
"""
Enums for ledger models.
"""

from enum import Enum as PyEnum


class AttendanceStatus(PyEnum):
    """Attendance status enumeration"""

    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"


class BadgeStatus(PyEnum):
    """Badge progress workflow status"""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self):
        return self is not BadgeStatus.PENDING


class StarType(PyEnum):
    """Kind of star recorded for a badge level"""

    PROIE = "proie"
    BATTUE = "battue"


class PointSource(PyEnum):
    """What produced a point event"""

    ATTENDANCE = "attendance"
    HONOR = "honor"
    BADGE = "badge"
    MANUAL = "manual"
    GROUP_AWARD = "group_award"


class SubjectType(PyEnum):
    """Aggregation subject for ledger totals"""

    PARTICIPANT = "participant"
    GROUP = "group"
    ORGANIZATION = "organization"
