# troop_app/services/honors.py
"""
Honor awards, at most one per participant per date per organization.

The unique constraint on ``honors`` decides whether an award is new; the insert
runs in a savepoint so a duplicate only undoes itself, not the surrounding
batch.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from troop_app.models import Honor, Participant, PointSource, db
from troop_app.services.errors import NotFound, ValidationFailure
from troop_app.services.point_ledger import PointLedger
from troop_app.services.point_rules import PointRulesProvider, RulesConfig
from troop_app.services.transaction import ledger_transaction


@dataclass
class HonorResult:
    participant_id: int | None
    date: date | None
    awarded: bool
    points: int = 0
    honor_id: int | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = {
            "participant_id": self.participant_id,
            "date": self.date.isoformat() if self.date else None,
            "awarded": self.awarded,
            "points": self.points,
            "honor_id": self.honor_id,
        }
        if self.error:
            payload["error"] = self.error
        return payload


def _parse_item(item: Any) -> tuple[int | None, date | None, str | None]:
    if not isinstance(item, dict):
        return None, None, None
    participant_id = item.get("participant_id")
    if isinstance(participant_id, bool) or not isinstance(participant_id, int):
        try:
            participant_id = int(str(participant_id))
        except (TypeError, ValueError):
            participant_id = None
    honor_date = item.get("date")
    if not isinstance(honor_date, date):
        try:
            honor_date = date.fromisoformat(str(honor_date)) if honor_date else None
        except ValueError:
            honor_date = None
    reason = item.get("reason")
    return participant_id, honor_date, str(reason) if reason is not None else None


class HonorAwardService:
    def __init__(self, session: Session | None = None):
        self.session: Session = session or db.session
        self.ledger = PointLedger(self.session)
        self.rules_provider = PointRulesProvider(self.session)

    def award(
        self, participant_id: int, honor_date: date, organization_id: int, reason: str | None = None, actor=None
    ) -> HonorResult:
        rules = self.rules_provider.get_rules(organization_id).rules
        with ledger_transaction(
            self.session,
            operation="honor_award",
            organization_id=organization_id,
            subject=f"participant {participant_id} on {honor_date}",
        ):
            result = self._award_one(participant_id, honor_date, organization_id, reason, rules, actor)
        self._log_result(result, organization_id)
        return result

    def award_batch(self, items: Iterable[Any], organization_id: int, actor=None) -> list[HonorResult]:
        """Award several honors in one transaction, reporting each item separately."""
        items = list(items)
        if not items:
            raise ValidationFailure("No honors provided")

        rules = self.rules_provider.get_rules(organization_id).rules
        results = []
        with ledger_transaction(
            self.session,
            operation="honor_batch_award",
            organization_id=organization_id,
            subject=f"{len(items)} honors",
        ):
            for item in items:
                participant_id, honor_date, reason = _parse_item(item)
                if participant_id is None or honor_date is None:
                    results.append(HonorResult(participant_id, honor_date, False, error="invalid"))
                    continue
                try:
                    results.append(
                        self._award_one(participant_id, honor_date, organization_id, reason, rules, actor)
                    )
                except NotFound:
                    results.append(HonorResult(participant_id, honor_date, False, error="not_found"))

        for result in results:
            self._log_result(result, organization_id)
        return results

    def _award_one(
        self,
        participant_id: int,
        honor_date: date,
        organization_id: int,
        reason: str | None,
        rules: RulesConfig,
        actor,
    ) -> HonorResult:
        if not self.ledger.is_member(participant_id, organization_id):
            raise NotFound(f"Participant {participant_id} not found")

        actor_id = getattr(actor, "id", None)
        honor = Honor(
            participant_id=participant_id,
            organization_id=organization_id,
            date=honor_date,
            reason=reason,
            awarded_by_user_id=actor_id,
        )
        try:
            with self.session.begin_nested():
                self.session.add(honor)
        except IntegrityError:
            return HonorResult(participant_id, honor_date, awarded=False)

        self.ledger.append(
            organization_id,
            rules.honor_award,
            participant_id=participant_id,
            group_id=self.ledger.current_group_id(participant_id, organization_id),
            effective_date=honor_date,
            source=PointSource.HONOR,
            reference_id=honor.id,
            created_by=actor_id,
        )
        return HonorResult(participant_id, honor_date, awarded=True, points=rules.honor_award, honor_id=honor.id)

    @staticmethod
    def _log_result(result: HonorResult, organization_id: int) -> None:
        if result.error:
            current_app.logger.warning(
                f"Honor not awarded for participant {result.participant_id} "
                f"in organization {organization_id}: {result.error}"
            )
        elif result.awarded:
            current_app.logger.info(
                f"Honor awarded org {organization_id} participant {result.participant_id} {result.date}, "
                f"points {result.points:+d}"
            )
        else:
            current_app.logger.info(
                f"Honor already awarded org {organization_id} participant {result.participant_id} {result.date}"
            )

    def honors_for(
        self,
        organization_id: int,
        on_date: date | None = None,
        participant_id: int | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[Honor]:
        query = self.session.query(Honor).filter(Honor.organization_id == organization_id)
        if on_date is not None:
            query = query.filter(Honor.date == on_date)
        if participant_id is not None:
            query = query.filter(Honor.participant_id == participant_id)
        if start_date is not None:
            query = query.filter(Honor.date >= start_date)
        if end_date is not None:
            query = query.filter(Honor.date <= end_date)
        return query.order_by(Honor.date.desc(), Honor.participant_id).all()

    def dates(self, organization_id: int) -> list[date]:
        rows = (
            self.session.query(Honor.date)
            .filter(Honor.organization_id == organization_id)
            .distinct()
            .order_by(Honor.date.desc())
            .all()
        )
        return [row.date for row in rows]

    def summary(self, organization_id: int) -> list[dict[str, Any]]:
        """Honor count per participant, most honored first."""
        honor_count = func.count(Honor.id).label("honor_count")
        rows = (
            self.session.query(Participant.id, Participant.first_name, Participant.last_name, honor_count)
            .join(Honor, Honor.participant_id == Participant.id)
            .filter(Honor.organization_id == organization_id)
            .group_by(Participant.id, Participant.first_name, Participant.last_name)
            .order_by(honor_count.desc(), Participant.first_name)
            .all()
        )
        return [
            {
                "participant_id": row.id,
                "first_name": row.first_name,
                "last_name": row.last_name,
                "honor_count": int(row.honor_count),
            }
            for row in rows
        ]
