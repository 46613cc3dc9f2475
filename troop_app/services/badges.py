# troop_app/services/badges.py
"""
Badge progress workflow: submit, then approve or reject.

``approved`` and ``rejected`` are terminal. Deciding an already decided badge
returns it unchanged, so a double click can never append a second point event.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Mapping

from flask import current_app
from sqlalchemy import func
from sqlalchemy.orm import Session

from troop_app.models import BadgeProgress, BadgeStatus, Participant, PointSource, StarType, db
from troop_app.models.base import utcnow
from troop_app.services.errors import Forbidden, NotFound, Unauthorized, ValidationFailure
from troop_app.services.point_ledger import PointLedger
from troop_app.services.point_rules import PointRulesProvider
from troop_app.services.transaction import ledger_transaction
from troop_app.utils.permissions import has_role


@dataclass
class BadgeDecision:
    badge: BadgeProgress
    changed: bool
    points: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"badge": self.badge.to_dict(), "changed": self.changed, "points": self.points}


def parse_star_type(value: Any) -> StarType:
    if value is None or value == "":
        return StarType.PROIE
    if isinstance(value, StarType):
        return value
    try:
        return StarType(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(star.value for star in StarType)
        raise ValidationFailure(f"Invalid star type {value!r}", details={"star_type": f"must be one of {allowed}"})


class BadgeWorkflow:
    def __init__(self, session: Session | None = None):
        self.session: Session = session or db.session
        self.ledger = PointLedger(self.session)
        self.rules_provider = PointRulesProvider(self.session)

    def submit(self, participant_id: int, fields: Mapping[str, Any], organization_id: int, actor=None) -> BadgeProgress:
        """
        Record a pending star for review.

        Without an explicit level the next level after the highest pending or
        approved one for the same territory is used.
        """
        territory = (fields.get("territory") or "").strip()
        if not territory:
            raise ValidationFailure("Territory is required", details={"territory": "required"})
        star_type = parse_star_type(fields.get("star_type"))
        level = fields.get("level")
        if level is not None and (isinstance(level, bool) or not isinstance(level, int) or level < 1):
            raise ValidationFailure("Level must be a positive integer", details={"level": "must be >= 1"})
        date_obtained = fields.get("date_obtained")
        if date_obtained is not None and not isinstance(date_obtained, date):
            raise ValidationFailure("date_obtained must be a date", details={"date_obtained": "must be YYYY-MM-DD"})

        with ledger_transaction(
            self.session,
            operation="badge_submit",
            organization_id=organization_id,
            subject=f"participant {participant_id} {territory}",
        ):
            if not self.ledger.is_member(participant_id, organization_id):
                raise NotFound(f"Participant {participant_id} not found")

            taken = {
                row.level
                for row in self.session.query(BadgeProgress.level).filter(
                    BadgeProgress.organization_id == organization_id,
                    BadgeProgress.participant_id == participant_id,
                    BadgeProgress.territory == territory,
                    BadgeProgress.status != BadgeStatus.REJECTED,
                )
            }
            if level is None:
                level = max(taken, default=0) + 1
            elif level in taken:
                raise ValidationFailure(
                    f"Level {level} of {territory} is already recorded", details={"level": "already recorded"}
                )

            badge = BadgeProgress(
                organization_id=organization_id,
                participant_id=participant_id,
                territory=territory,
                section=fields.get("section"),
                objective=fields.get("objective"),
                description=fields.get("description"),
                level=level,
                star_type=star_type,
                date_obtained=date_obtained,
                status=BadgeStatus.PENDING,
                submitted_by_user_id=getattr(actor, "id", None),
            )
            self.session.add(badge)
            self.session.flush()

        current_app.logger.info(
            f"Badge submitted org {organization_id} participant {participant_id}: {territory} level {level}"
        )
        return badge

    def approve(self, badge_id: int, actor, organization_id: int | None = None) -> BadgeDecision:
        return self._decide(badge_id, actor, organization_id, BadgeStatus.APPROVED)

    def reject(self, badge_id: int, actor, organization_id: int | None = None) -> BadgeDecision:
        return self._decide(badge_id, actor, organization_id, BadgeStatus.REJECTED)

    def _authorize(self, actor, organization_id: int) -> None:
        if actor is None or not getattr(actor, "is_authenticated", False):
            raise Unauthorized()
        approver_roles = current_app.config.get("BADGE_APPROVER_ROLES", ("ORG_ADMIN", "LEADER"))
        if not has_role(actor, approver_roles, organization_id):
            raise Forbidden("You do not have permission to review badges")

    def _locked_badge(self, badge_id: int, organization_id: int | None) -> BadgeProgress:
        badge = self.session.query(BadgeProgress).filter_by(id=badge_id).with_for_update().first()
        if badge is None or (organization_id is not None and badge.organization_id != organization_id):
            raise NotFound(f"Badge {badge_id} not found")
        return badge

    def _decide(self, badge_id: int, actor, organization_id: int | None, outcome: BadgeStatus) -> BadgeDecision:
        if actor is None or not getattr(actor, "is_authenticated", False):
            raise Unauthorized()

        with ledger_transaction(
            self.session,
            operation=f"badge_{outcome.value}",
            organization_id=organization_id or 0,
            subject=f"badge {badge_id}",
        ):
            badge = self._locked_badge(badge_id, organization_id)
            self._authorize(actor, badge.organization_id)

            if badge.status.is_terminal:
                decision = BadgeDecision(badge, changed=False)
            else:
                badge.status = outcome
                badge.approved_by = actor.id
                badge.approval_date = utcnow()
                decision = BadgeDecision(badge, changed=True)
                if outcome is BadgeStatus.APPROVED:
                    rules = self.rules_provider.get_rules(badge.organization_id).rules
                    self.ledger.append(
                        badge.organization_id,
                        rules.badge_earn,
                        participant_id=badge.participant_id,
                        group_id=self.ledger.current_group_id(badge.participant_id, badge.organization_id),
                        effective_date=utcnow().date(),
                        source=PointSource.BADGE,
                        reference_id=badge.id,
                        created_by=actor.id,
                    )
                    decision.points = rules.badge_earn
                self.session.flush()

        if decision.changed:
            current_app.logger.info(
                f"Badge {badge.id} {outcome.value} by user {actor.id} in org {badge.organization_id}, "
                f"points {decision.points:+d}"
            )
        else:
            current_app.logger.info(
                f"Badge {badge.id} already {badge.status.value}; {outcome.value} request by user {actor.id} ignored"
            )
        return decision

    def mark_delivered(self, badge_ids: Iterable[int], actor, organization_id: int) -> list[BadgeProgress]:
        """Stamp approved, undelivered badges as handed over."""
        badge_ids = list(badge_ids)
        if not badge_ids:
            raise ValidationFailure("No badges provided", details={"badge_ids": "required"})
        self._authorize(actor, organization_id)

        with ledger_transaction(
            self.session,
            operation="badge_delivery",
            organization_id=organization_id,
            subject=f"{len(badge_ids)} badges",
        ):
            badges = (
                self.session.query(BadgeProgress)
                .filter(
                    BadgeProgress.id.in_(badge_ids),
                    BadgeProgress.organization_id == organization_id,
                    BadgeProgress.status == BadgeStatus.APPROVED,
                    BadgeProgress.delivered_at.is_(None),
                )
                .with_for_update()
                .all()
            )
            delivered_at = utcnow()
            for badge in badges:
                badge.delivered_at = delivered_at

        current_app.logger.info(
            f"Marked {len(badges)} of {len(badge_ids)} badge(s) delivered in org {organization_id}"
        )
        return badges

    def pending(self, organization_id: int) -> list[dict[str, Any]]:
        rows = (
            self.session.query(BadgeProgress, Participant.first_name, Participant.last_name)
            .join(Participant, Participant.id == BadgeProgress.participant_id)
            .filter(
                BadgeProgress.organization_id == organization_id,
                BadgeProgress.status == BadgeStatus.PENDING,
            )
            .order_by(BadgeProgress.date_obtained, BadgeProgress.id)
            .all()
        )
        return [
            {**badge.to_dict(), "first_name": first_name, "last_name": last_name}
            for badge, first_name, last_name in rows
        ]

    def history(self, participant_id: int, organization_id: int) -> list[BadgeProgress]:
        return (
            self.session.query(BadgeProgress)
            .filter_by(participant_id=participant_id, organization_id=organization_id)
            .order_by(BadgeProgress.territory, BadgeProgress.level, BadgeProgress.id)
            .all()
        )

    def current_stars(self, participant_id: int, organization_id: int) -> dict[str, int]:
        """Highest approved level per territory."""
        rows = (
            self.session.query(BadgeProgress.territory, func.max(BadgeProgress.level).label("stars"))
            .filter(
                BadgeProgress.participant_id == participant_id,
                BadgeProgress.organization_id == organization_id,
                BadgeProgress.status == BadgeStatus.APPROVED,
            )
            .group_by(BadgeProgress.territory)
            .all()
        )
        return {row.territory: int(row.stars) for row in rows}
