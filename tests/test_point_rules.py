"""Tests for per-organization point rules"""

import json
import logging
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from troop_app.models import AttendanceStatus, Group, OrganizationSetting, db
from troop_app.services.errors import TransactionFailure, ValidationFailure
from troop_app.services.point_rules import (
    DEFAULT_RULES,
    SETTING_KEY,
    PointRulesProvider,
    RulesConfig,
    build_rules,
    validate_rules,
)


def store_rules(organization_id, value):
    db.session.add(OrganizationSetting(organization_id=organization_id, setting_key=SETTING_KEY, setting_value=value))
    db.session.commit()


@pytest.mark.unit
class TestRulesConfig:
    def test_defaults(self):
        assert DEFAULT_RULES.points_for_status(AttendanceStatus.PRESENT) == 1
        assert DEFAULT_RULES.points_for_status("late") == 0
        assert DEFAULT_RULES.points_for_status(None) == 0
        assert DEFAULT_RULES.honor_award == 5
        assert DEFAULT_RULES.badge_earn == 5

    def test_unknown_status_is_worth_nothing(self):
        assert RulesConfig(present=3).points_for_status("sleeping") == 0

    def test_storage_layout(self):
        stored = RulesConfig(present=2, honor_award=7).to_storage()
        assert stored["attendance"]["present"]["points"] == 2
        assert stored["honors"] == {"award": 7}
        assert stored["badges"] == {"earn": 5, "level_up": 10}


@pytest.mark.unit
class TestBuildRules:
    def test_nested_layout(self):
        rules, fallback = build_rules(
            {
                "attendance": {"present": {"label": "Présent", "points": 2}, "late": {"points": 1}},
                "honors": {"award": 10},
                "badges": {"earn": 8},
            }
        )
        assert (rules.present, rules.late, rules.honor_award, rules.badge_earn) == (2, 1, 10, 8)
        assert rules.absent == 0
        assert fallback == ()

    def test_flat_layout_and_rounding(self):
        rules, fallback = build_rules({"present": 1.6, "honor_award": 4})
        assert rules.present == 2
        assert rules.honor_award == 4
        assert fallback == ()

    def test_bad_values_keep_defaults(self):
        rules, fallback = build_rules({"present": "lots", "late": True, "honors": "none"})
        assert rules.present == DEFAULT_RULES.present
        assert rules.late == DEFAULT_RULES.late
        assert set(fallback) == {"present", "late", "honors"}

    def test_validate_rejects_non_numbers(self):
        with pytest.raises(ValidationFailure) as exc_info:
            validate_rules({"attendance": {"present": {"points": "one"}}})
        assert exc_info.value.details == {"present": "must be a number"}

    def test_validate_rejects_non_object(self):
        with pytest.raises(ValidationFailure):
            validate_rules([1, 2, 3])


@pytest.mark.unit
class TestPointRulesProvider:
    def test_unconfigured_organization_uses_defaults(self, app, organization):
        resolution = PointRulesProvider().get_rules(organization.id)
        assert resolution.rules == DEFAULT_RULES
        assert resolution.used_default is True
        assert resolution.reason == "not configured"

    def test_configured_rules_are_read(self, app, organization):
        store_rules(organization.id, json.dumps({"attendance": {"present": {"points": 3}}, "honors": {"award": 2}}))
        resolution = PointRulesProvider().get_rules(organization.id)
        assert resolution.used_default is False
        assert resolution.rules.present == 3
        assert resolution.rules.honor_award == 2

    def test_malformed_json_falls_back(self, app, organization, caplog):
        store_rules(organization.id, "{not json")
        with caplog.at_level(logging.WARNING):
            resolution = PointRulesProvider().get_rules(organization.id)
        assert resolution.rules == DEFAULT_RULES
        assert resolution.used_default is True
        assert resolution.reason == "malformed JSON"
        assert f"organization {organization.id}" in caplog.text

    def test_json_array_falls_back(self, app, organization):
        store_rules(organization.id, "[1, 2]")
        resolution = PointRulesProvider().get_rules(organization.id)
        assert resolution.used_default is True
        assert resolution.reason == "malformed JSON"

    def test_database_error_falls_back(self, app, organization):
        with patch.object(
            OrganizationSetting, "get_raw", side_effect=OperationalError("SELECT", {}, Exception("down"))
        ):
            resolution = PointRulesProvider().get_rules(organization.id)
        assert resolution.used_default is True
        assert resolution.reason == "rules lookup failed"

    def test_database_error_keeps_caller_transaction(self, app, organization):
        """Work flushed before the failed lookup is still committed afterwards"""
        db.session.add(Group(organization_id=organization.id, name="Loups gris"))
        db.session.flush()

        with patch.object(
            OrganizationSetting, "get_raw", side_effect=OperationalError("SELECT", {}, Exception("down"))
        ):
            assert PointRulesProvider().get_rules(organization.id).used_default is True

        db.session.commit()
        assert Group.query.filter_by(organization_id=organization.id).count() == 1

    def test_rules_are_read_fresh(self, app, organization):
        """A change applies to the next call, no restart or cache expiry needed"""
        provider = PointRulesProvider()
        assert provider.get_rules(organization.id).rules.present == 1
        provider.save_rules(organization.id, {"present": 4})
        assert provider.get_rules(organization.id).rules.present == 4

    def test_save_rules_is_scoped_to_organization(self, app, organization, other_organization):
        provider = PointRulesProvider()
        provider.save_rules(other_organization.id, {"honor_award": 9})
        assert provider.get_rules(other_organization.id).rules.honor_award == 9
        assert provider.get_rules(organization.id).rules.honor_award == 5

    def test_save_rules_database_error(self, app, organization):
        provider = PointRulesProvider()
        with patch.object(provider.session, "commit", side_effect=OperationalError("UPDATE", {}, Exception("x"))):
            with pytest.raises(TransactionFailure):
                provider.save_rules(organization.id, {"present": 2})
