"""Tests for the badge submission and review workflow"""

from datetime import date

import pytest

from troop_app.models import BadgeProgress, BadgeStatus, PointEvent, PointSource, StarType, SubjectType
from troop_app.services.badges import BadgeWorkflow
from troop_app.services.errors import Forbidden, NotFound, Unauthorized, ValidationFailure
from troop_app.services.point_ledger import PointLedger


@pytest.fixture
def workflow(app):
    return BadgeWorkflow()


@pytest.fixture
def pending_badge(workflow, organization, troop):
    return workflow.submit(
        57,
        {"territory": "Débrouillardise", "objective": "Faire un noeud", "date_obtained": date(2024, 10, 4)},
        organization.id,
    )


@pytest.mark.unit
class TestSubmit:
    def test_submit_creates_pending_badge_without_points(self, pending_badge):
        assert pending_badge.status is BadgeStatus.PENDING
        assert pending_badge.level == 1
        assert pending_badge.star_type is StarType.PROIE
        assert PointEvent.query.count() == 0

    def test_next_level_is_computed(self, workflow, organization, pending_badge):
        second = workflow.submit(57, {"territory": "Débrouillardise", "star_type": "battue"}, organization.id)
        assert second.level == 2
        assert second.star_type is StarType.BATTUE

    def test_rejected_levels_can_be_resubmitted(self, workflow, organization, pending_badge, leader):
        workflow.reject(pending_badge.id, leader, organization.id)
        again = workflow.submit(57, {"territory": "Débrouillardise"}, organization.id)
        assert again.level == 1

    def test_duplicate_level(self, workflow, organization, pending_badge):
        with pytest.raises(ValidationFailure):
            workflow.submit(57, {"territory": "Débrouillardise", "level": 1}, organization.id)

    def test_territory_required(self, workflow, organization, troop):
        with pytest.raises(ValidationFailure):
            workflow.submit(57, {"territory": "  "}, organization.id)

    def test_invalid_star_type(self, workflow, organization, troop):
        with pytest.raises(ValidationFailure):
            workflow.submit(57, {"territory": "Santé", "star_type": "gold"}, organization.id)

    def test_participant_outside_organization(self, workflow, organization, troop):
        with pytest.raises(NotFound):
            workflow.submit(90, {"territory": "Santé"}, organization.id)


@pytest.mark.unit
class TestDecisions:
    def test_approve_appends_badge_points(self, workflow, organization, pending_badge, leader):
        decision = workflow.approve(pending_badge.id, leader, organization.id)

        assert decision.changed is True
        assert decision.points == 5
        assert decision.badge.status is BadgeStatus.APPROVED
        assert decision.badge.approved_by == leader.id
        assert decision.badge.approval_date is not None
        event = PointEvent.query.one()
        assert event.source is PointSource.BADGE
        assert event.reference_id == pending_badge.id
        assert PointLedger().total_for(SubjectType.PARTICIPANT, 57, organization.id) == 5

    def test_second_approval_is_a_no_op(self, workflow, organization, pending_badge, leader, org_admin):
        first = workflow.approve(pending_badge.id, leader, organization.id)
        approved_at = first.badge.approval_date

        second = workflow.approve(pending_badge.id, org_admin, organization.id)

        assert second.changed is False
        assert second.points == 0
        assert second.badge.approved_by == leader.id
        assert second.badge.approval_date == approved_at
        assert PointEvent.query.count() == 1

    def test_reject_after_approval_is_a_no_op(self, workflow, organization, pending_badge, leader, org_admin):
        first = workflow.approve(pending_badge.id, leader, organization.id)
        approved_at = first.badge.approval_date

        rejected = workflow.reject(pending_badge.id, org_admin, organization.id)

        assert rejected.changed is False
        assert rejected.points == 0
        assert rejected.badge.status is BadgeStatus.APPROVED
        assert rejected.badge.approved_by == leader.id
        assert rejected.badge.approval_date == approved_at
        assert PointEvent.query.count() == 1

    def test_reject_is_terminal(self, workflow, organization, pending_badge, leader):
        rejected = workflow.reject(pending_badge.id, leader, organization.id)
        assert rejected.changed is True
        assert rejected.badge.status is BadgeStatus.REJECTED

        approved = workflow.approve(pending_badge.id, leader, organization.id)
        assert approved.changed is False
        assert approved.badge.status is BadgeStatus.REJECTED
        assert PointEvent.query.count() == 0

    def test_missing_actor(self, workflow, organization, pending_badge):
        with pytest.raises(Unauthorized):
            workflow.approve(pending_badge.id, None, organization.id)

    def test_role_without_approval_rights(self, workflow, organization, pending_badge, animator):
        with pytest.raises(Forbidden):
            workflow.approve(pending_badge.id, animator, organization.id)
        assert BadgeProgress.query.one().status is BadgeStatus.PENDING

    def test_leader_of_another_organization(self, workflow, organization, other_organization, pending_badge, make_user):
        outsider = make_user("shere", "LEADER", other_organization)
        with pytest.raises(Forbidden):
            workflow.approve(pending_badge.id, outsider)

    def test_badge_from_another_tenant_is_not_found(self, workflow, other_organization, pending_badge, super_admin):
        with pytest.raises(NotFound):
            workflow.approve(pending_badge.id, super_admin, other_organization.id)

    def test_super_admin_may_approve(self, workflow, organization, pending_badge, super_admin):
        assert workflow.approve(pending_badge.id, super_admin, organization.id).changed is True


@pytest.mark.unit
class TestQueriesAndDelivery:
    def test_pending_history_and_stars(self, workflow, organization, pending_badge, leader):
        second = workflow.submit(57, {"territory": "Débrouillardise"}, organization.id)
        workflow.approve(pending_badge.id, leader, organization.id)

        pending = workflow.pending(organization.id)
        assert [row["id"] for row in pending] == [second.id]
        assert pending[0]["first_name"] == "Mowgli"
        assert [badge.level for badge in workflow.history(57, organization.id)] == [1, 2]
        assert workflow.current_stars(57, organization.id) == {"Débrouillardise": 1}

    def test_mark_delivered_only_approved(self, workflow, organization, pending_badge, leader):
        second = workflow.submit(57, {"territory": "Santé"}, organization.id)
        workflow.approve(pending_badge.id, leader, organization.id)

        delivered = workflow.mark_delivered([pending_badge.id, second.id], leader, organization.id)

        assert [badge.id for badge in delivered] == [pending_badge.id]
        assert workflow.mark_delivered([pending_badge.id], leader, organization.id) == []
