"""Tests for the append-only point ledger"""

from datetime import date

import pytest

from troop_app.models import AttendanceRecord, AttendanceStatus, PointEvent, PointSource, SubjectType, db
from troop_app.services.errors import NotFound, ValidationFailure
from troop_app.services.point_ledger import PointLedger


@pytest.fixture
def ledger(app):
    return PointLedger()


@pytest.mark.unit
class TestAppend:
    def test_append_requires_subject(self, ledger, organization):
        with pytest.raises(ValidationFailure):
            ledger.append(organization.id, 3)

    def test_append_rejects_non_integer_values(self, ledger, organization, troop):
        for value in (True, 1.5, "2"):
            with pytest.raises(ValidationFailure):
                ledger.append(organization.id, value, participant_id=57)

    def test_totals_are_additive(self, ledger, organization, troop):
        ledger.append(organization.id, 3, participant_id=57)
        ledger.append(organization.id, -1, participant_id=57)
        db.session.commit()
        assert ledger.total_for(SubjectType.PARTICIPANT, 57, organization.id) == 2

    def test_zero_value_is_accepted_and_changes_nothing(self, ledger, organization, troop):
        ledger.append(organization.id, 4, participant_id=57)
        event = ledger.append(organization.id, 0, participant_id=57)
        db.session.commit()
        assert event.id is not None
        assert ledger.total_for("participant", 57, organization.id) == 4

    def test_no_events_totals_zero(self, ledger, organization, troop):
        assert ledger.total_for("participant", 59, organization.id) == 0
        assert ledger.total_for("group", troop["wolves"].id, organization.id) == 0
        assert ledger.total_for("organization", None, organization.id) == 0

    def test_events_cannot_be_changed_or_deleted(self, ledger, organization, troop):
        event = ledger.append(organization.id, 3, participant_id=57)
        db.session.commit()

        event.value = 30
        with pytest.raises(ValueError):
            db.session.flush()
        db.session.rollback()

        db.session.delete(event)
        with pytest.raises(ValueError):
            db.session.flush()
        db.session.rollback()

        assert ledger.total_for("participant", 57, organization.id) == 3

    def test_unknown_subject_type(self, ledger, organization):
        with pytest.raises(ValidationFailure):
            ledger.total_for("troop", 1, organization.id)


@pytest.mark.unit
class TestTenantIsolation:
    def test_totals_never_cross_organizations(self, ledger, organization, other_organization, troop):
        """Events recorded for the same participant id in another tenant are not counted"""
        ledger.append(organization.id, 5, participant_id=57)
        ledger.append(other_organization.id, 100, participant_id=57)
        ledger.append(other_organization.id, 7, participant_id=90)
        db.session.commit()

        assert ledger.total_for("participant", 57, organization.id) == 5
        assert ledger.total_for("participant", 57, other_organization.id) == 100
        assert ledger.total_for("organization", None, organization.id) == 5
        assert ledger.total_for("organization", None, other_organization.id) == 107


@pytest.mark.unit
class TestGroupAward:
    def test_group_award_fans_out_to_members(self, ledger, organization, troop):
        award = ledger.award_group(troop["wolves"].id, 10, organization.id, effective_date=date(2024, 10, 4))
        db.session.commit()

        assert award.group_event.participant_id is None
        assert sorted(award.member_ids) == [57, 58]
        assert award.skipped_participant_ids == []
        assert ledger.total_for("group", troop["wolves"].id, organization.id) == 10
        assert ledger.total_for("participant", 57, organization.id) == 10
        assert ledger.total_for("participant", 58, organization.id) == 10
        assert ledger.total_for("participant", 59, organization.id) == 0

    def test_group_total_excludes_member_events(self, ledger, organization, troop):
        """Member events carry the group id but only group-only events count toward the group"""
        ledger.award_participant(57, 3, organization.id)
        db.session.commit()
        event = PointEvent.query.filter_by(participant_id=57).one()
        assert event.group_id == troop["wolves"].id
        assert ledger.total_for("group", troop["wolves"].id, organization.id) == 0

    def test_attendance_filter_limits_fan_out(self, ledger, organization, troop):
        meeting = date(2024, 10, 4)
        db.session.add_all(
            [
                AttendanceRecord(participant_id=57, organization_id=organization.id, date=meeting, status=AttendanceStatus.PRESENT),
                AttendanceRecord(participant_id=58, organization_id=organization.id, date=meeting, status=AttendanceStatus.ABSENT),
            ]
        )
        db.session.commit()

        award = ledger.award_group(troop["wolves"].id, 4, organization.id, attendance_date=meeting)
        db.session.commit()

        assert award.member_ids == [57]
        assert award.skipped_participant_ids == [58]
        assert ledger.total_for("participant", 58, organization.id) == 0

    def test_attendance_filter_ignored_without_records(self, ledger, organization, troop):
        award = ledger.award_group(troop["wolves"].id, 4, organization.id, attendance_date=date(2024, 1, 1))
        assert sorted(award.member_ids) == [57, 58]

    def test_group_from_another_organization(self, ledger, organization, troop):
        with pytest.raises(NotFound):
            ledger.award_group(troop["reds"].id, 4, organization.id)


@pytest.mark.unit
class TestApplyUpdates:
    def test_mixed_batch(self, ledger, organization, troop):
        results = ledger.apply_updates(
            [
                {"type": "participant", "id": 59, "points": 2, "date": "2024-10-04"},
                {"type": "group", "id": troop["wolves"].id, "points": 5},
            ],
            organization.id,
        )

        assert results[0]["total_points"] == 2
        assert results[0]["group_id"] is None
        assert results[1]["total_points"] == 5
        assert results[1]["member_totals"] == {57: 5, 58: 5}
        assert PointEvent.query.filter_by(source=PointSource.MANUAL).count() == 1

    def test_invalid_update_writes_nothing(self, ledger, organization, troop):
        with pytest.raises(ValidationFailure):
            ledger.apply_updates(
                [{"type": "participant", "id": 57, "points": 2}, {"type": "participant", "id": 58, "points": "x"}],
                organization.id,
            )
        assert PointEvent.query.count() == 0

    def test_unknown_participant_rolls_back_batch(self, ledger, organization, troop):
        with pytest.raises(NotFound):
            ledger.apply_updates(
                [{"type": "participant", "id": 57, "points": 2}, {"type": "participant", "id": 90, "points": 2}],
                organization.id,
            )
        assert PointEvent.query.count() == 0


@pytest.mark.unit
class TestAggregates:
    def test_leaderboard_orders_by_total(self, ledger, organization, troop):
        ledger.append(organization.id, 2, participant_id=57)
        ledger.append(organization.id, 9, participant_id=58)
        ledger.append(organization.id, 5, participant_id=59)
        db.session.commit()

        board = ledger.leaderboard(organization.id, "individuals", limit=2)
        assert [row["id"] for row in board] == [58, 59]
        assert board[0]["rank"] == 1
        assert board[0]["total_points"] == 9

    def test_group_totals(self, ledger, organization, troop):
        ledger.award_group(troop["wolves"].id, 3, organization.id)
        db.session.commit()

        totals = ledger.group_totals(organization.id)
        assert totals == [{"id": troop["wolves"].id, "name": "Loups gris", "member_count": 2, "total_points": 3}]

    def test_participant_totals_only_include_tenant_members(self, ledger, organization, troop):
        ids = [row["id"] for row in ledger.participant_totals(organization.id)]
        assert sorted(ids) == [57, 58, 59]

    def test_history_most_recent_first(self, ledger, organization, troop):
        ledger.append(organization.id, 1, participant_id=57, effective_date=date(2024, 9, 1))
        ledger.append(organization.id, 2, participant_id=57, effective_date=date(2024, 10, 1))
        db.session.commit()
        assert [event.value for event in ledger.history(organization.id, participant_id=57)] == [2, 1]

    def test_leaderboard_rejects_unknown_type(self, ledger, organization):
        with pytest.raises(ValidationFailure):
            ledger.leaderboard(organization.id, "parents")
