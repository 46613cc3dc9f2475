# troop_app/services/__init__.py
"""
Ledger services: tenant resolution, point rules, the point ledger and the
attendance, honor and badge workflows that write to it.
"""

from .attendance import AttendanceChange, AttendanceTracker
from .badges import BadgeDecision, BadgeWorkflow
from .errors import Forbidden, LedgerError, NotFound, TransactionFailure, Unauthorized, ValidationFailure
from .honors import HonorAwardService, HonorResult
from .point_ledger import GroupAward, PointLedger
from .point_rules import DEFAULT_RULES, PointRulesProvider, RulesConfig, RulesResolution
from .tenant_resolver import TenantResolution, TenantResolver

__all__ = [
    "AttendanceChange",
    "AttendanceTracker",
    "BadgeDecision",
    "BadgeWorkflow",
    "DEFAULT_RULES",
    "Forbidden",
    "GroupAward",
    "HonorAwardService",
    "HonorResult",
    "LedgerError",
    "NotFound",
    "PointLedger",
    "PointRulesProvider",
    "RulesConfig",
    "RulesResolution",
    "TenantResolution",
    "TenantResolver",
    "TransactionFailure",
    "Unauthorized",
    "ValidationFailure",
]
