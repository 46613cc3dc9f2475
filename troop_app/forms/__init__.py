# troop_app/forms/__init__.py
"""
WTForms package
"""

from .auth import LoginForm
from .ledger import (
    AttendanceDateForm,
    AttendanceFilterForm,
    AttendanceUpdateForm,
    BadgeDeliveryForm,
    BadgeSubmitForm,
    CarryForwardForm,
    HonorFilterForm,
    HonorForm,
    IntegerListField,
    LeaderboardForm,
    PointHistoryForm,
    PointTotalForm,
)

__all__ = [
    "LoginForm",
    "IntegerListField",
    "AttendanceUpdateForm",
    "AttendanceFilterForm",
    "AttendanceDateForm",
    "CarryForwardForm",
    "HonorForm",
    "HonorFilterForm",
    "LeaderboardForm",
    "PointTotalForm",
    "PointHistoryForm",
    "BadgeSubmitForm",
    "BadgeDeliveryForm",
]
