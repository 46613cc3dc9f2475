# troop_app/services/point_rules.py
"""
Per-organization point rules.

Rules are stored as JSON in the ``point_system_rules`` organization setting and
read fresh on every call so a change applies to the very next scored action.
Loading never raises: a missing row, malformed JSON or a database error yields
the built-in defaults, flagged with ``used_default`` and logged.
"""

from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Mapping

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config.monitoring import LedgerMonitoring
from troop_app.models import AttendanceStatus, OrganizationSetting, db
from troop_app.services.errors import TransactionFailure, ValidationFailure

SETTING_KEY = "point_system_rules"

ATTENDANCE_KEYS = tuple(status.value for status in AttendanceStatus)


@dataclass(frozen=True)
class RulesConfig:
    """Point value per scored activity."""

    present: int = 1
    absent: int = 0
    late: int = 0
    excused: int = 0
    honor_award: int = 5
    badge_earn: int = 5
    badge_level_up: int = 10

    def points_for_status(self, status: AttendanceStatus | str | None) -> int:
        """Points carried by an attendance status; no status is worth zero."""
        if status is None:
            return 0
        key = status.value if isinstance(status, AttendanceStatus) else str(status)
        if key not in ATTENDANCE_KEYS:
            return 0
        return getattr(self, key)

    def to_dict(self) -> dict[str, int]:
        return asdict(self)

    def to_storage(self) -> dict[str, Any]:
        """Nested layout written to organization settings."""
        return {
            "attendance": {key: {"label": key, "points": getattr(self, key)} for key in ATTENDANCE_KEYS},
            "honors": {"award": self.honor_award},
            "badges": {"earn": self.badge_earn, "level_up": self.badge_level_up},
        }


DEFAULT_RULES = RulesConfig()

RULE_FIELDS = tuple(f.name for f in fields(RulesConfig))


@dataclass(frozen=True)
class RulesResolution:
    """Rules for one organization plus how they were obtained."""

    rules: RulesConfig
    used_default: bool = False
    reason: str | None = None
    fallback_keys: tuple[str, ...] = field(default_factory=tuple)


def _coerce_points(value: Any) -> int | None:
    """Return an integer point value, or None when the value is not a number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(round(value))
    return None


def _flatten(payload: Mapping[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """
    Collect raw rule values from either the nested or the flat layout.

    Returns the raw values keyed by rule field and a list of structural problems.
    """
    raw: dict[str, Any] = {}
    problems: list[str] = []

    attendance = payload.get("attendance")
    if attendance is not None:
        if isinstance(attendance, Mapping):
            for status in ATTENDANCE_KEYS:
                if status in attendance:
                    value = attendance[status]
                    raw[status] = value.get("points") if isinstance(value, Mapping) else value
        else:
            problems.append("attendance")

    for section, mapping in (("honors", {"award": "honor_award"}), ("badges", {"earn": "badge_earn", "level_up": "badge_level_up"})):
        block = payload.get(section)
        if block is None:
            continue
        if not isinstance(block, Mapping):
            problems.append(section)
            continue
        for source_key, rule_key in mapping.items():
            if source_key in block:
                raw[rule_key] = block[source_key]

    for key in RULE_FIELDS:
        if key in payload:
            raw[key] = payload[key]

    return raw, problems


def build_rules(payload: Mapping[str, Any]) -> tuple[RulesConfig, tuple[str, ...]]:
    """Build rules leniently: unusable keys keep their default. Returns (rules, fallback_keys)."""
    raw, problems = _flatten(payload)
    values = {}
    fallback = list(problems)
    for key, value in raw.items():
        points = _coerce_points(value)
        if points is None:
            fallback.append(key)
            continue
        values[key] = points
    return RulesConfig(**{**DEFAULT_RULES.to_dict(), **values}), tuple(fallback)


def validate_rules(payload: Any) -> RulesConfig:
    """Strictly validate a rules payload submitted by an administrator."""
    if not isinstance(payload, Mapping):
        raise ValidationFailure("Point rules must be a JSON object")
    raw, problems = _flatten(payload)
    errors = {name: "must be an object" for name in problems}
    for key, value in raw.items():
        if _coerce_points(value) is None:
            errors[key] = "must be a number"
    if errors:
        raise ValidationFailure("Invalid point rules", details=errors)
    rules, _ = build_rules(payload)
    return rules


class PointRulesProvider:
    """Load and store point rules for an organization."""

    def __init__(self, session: Session | None = None):
        self.session: Session = session or db.session

    def get_rules(self, organization_id: int) -> RulesResolution:
        try:
            # A failed read rolls back to the savepoint, leaving the caller's transaction usable
            with self.session.begin_nested():
                stored = OrganizationSetting.get_raw(organization_id, SETTING_KEY, session=self.session)
        except SQLAlchemyError as e:
            current_app.logger.error(f"Database error loading point rules for organization {organization_id}: {str(e)}")
            return self._fallback(organization_id, "rules lookup failed")

        if stored is None or not str(stored).strip():
            # Unconfigured organizations are the normal case; no warning
            LedgerMonitoring.RULES_FALLBACK_COUNTER.labels(reason="not_configured").inc()
            current_app.logger.debug(f"No point rules configured for organization {organization_id}; using defaults")
            return RulesResolution(DEFAULT_RULES, used_default=True, reason="not configured")

        try:
            payload = json.loads(stored)
        except (TypeError, ValueError) as e:
            current_app.logger.warning(f"Malformed point rules JSON for organization {organization_id}: {str(e)}")
            return self._fallback(organization_id, "malformed JSON")

        if not isinstance(payload, Mapping):
            current_app.logger.warning(f"Point rules for organization {organization_id} are not a JSON object")
            return self._fallback(organization_id, "malformed JSON")

        rules, fallback_keys = build_rules(payload)
        if fallback_keys:
            current_app.logger.warning(
                f"Point rules for organization {organization_id} have unusable values for "
                f"{', '.join(sorted(fallback_keys))}; using defaults for those keys"
            )
        return RulesResolution(rules, used_default=False, fallback_keys=fallback_keys)

    def save_rules(self, organization_id: int, payload: Any) -> RulesConfig:
        """Validate and persist rules for an organization."""
        rules = validate_rules(payload)
        try:
            OrganizationSetting.set_raw(
                organization_id, SETTING_KEY, json.dumps(rules.to_storage()), session=self.session
            )
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            current_app.logger.error(f"Error saving point rules for organization {organization_id}: {str(e)}")
            raise TransactionFailure() from e
        current_app.logger.info(f"Point rules updated for organization {organization_id}: {rules.to_dict()}")
        return rules

    def _fallback(self, organization_id: int, reason: str) -> RulesResolution:
        LedgerMonitoring.RULES_FALLBACK_COUNTER.labels(reason=reason.replace(" ", "_")).inc()
        current_app.logger.warning(f"Using default point rules for organization {organization_id}: {reason}")
        return RulesResolution(DEFAULT_RULES, used_default=True, reason=reason)
