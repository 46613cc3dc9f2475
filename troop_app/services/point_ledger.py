# troop_app/services/point_ledger.py
"""
Append-only point ledger.

Totals are never stored; they are sums over ``PointEvent`` rows. The writers in
this module only ``flush``: the calling service owns the transaction so that a
status change and its point event commit or roll back together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable

from flask import current_app
from sqlalchemy import and_, desc, func, select
from sqlalchemy.orm import Session

from config.monitoring import LedgerMonitoring
from troop_app.models import (
    AttendanceRecord,
    AttendanceStatus,
    Group,
    Participant,
    ParticipantGroup,
    ParticipantOrganization,
    PointEvent,
    PointSource,
    SubjectType,
    db,
)
from troop_app.models.base import utcnow
from troop_app.services.errors import NotFound, ValidationFailure
from troop_app.services.transaction import ledger_transaction

SCORED_ATTENDANCE = (AttendanceStatus.PRESENT, AttendanceStatus.LATE)

LEADERBOARD_KINDS = ("groups", "individuals")


def today() -> date:
    return utcnow().date()


def _require_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationFailure(f"{name} must be an integer", details={name: "must be an integer"})
    return value


@dataclass
class GroupAward:
    """Events written by one group award."""

    group_id: int
    value: int
    effective_date: date
    group_event: PointEvent
    member_events: list[PointEvent] = field(default_factory=list)
    skipped_participant_ids: list[int] = field(default_factory=list)

    @property
    def member_ids(self) -> list[int]:
        return [event.participant_id for event in self.member_events]


class PointLedger:
    """Append point events and aggregate totals for one session."""

    def __init__(self, session: Session | None = None):
        self.session: Session = session or db.session

    # -- membership helpers -------------------------------------------------

    def is_member(self, participant_id: int, organization_id: int) -> bool:
        return (
            self.session.query(ParticipantOrganization.id)
            .filter_by(participant_id=participant_id, organization_id=organization_id)
            .first()
            is not None
        )

    def current_group_id(self, participant_id: int, organization_id: int) -> int | None:
        """Group the participant belongs to right now, or None."""
        return (
            self.session.query(ParticipantGroup.group_id)
            .filter_by(participant_id=participant_id, organization_id=organization_id)
            .scalar()
        )

    def group_member_ids(self, group_id: int, organization_id: int) -> list[int]:
        rows = (
            self.session.query(ParticipantGroup.participant_id)
            .filter_by(group_id=group_id, organization_id=organization_id)
            .order_by(ParticipantGroup.participant_id)
            .all()
        )
        return [row.participant_id for row in rows]

    # -- writers ------------------------------------------------------------

    def append(
        self,
        organization_id: int,
        value: int,
        participant_id: int | None = None,
        group_id: int | None = None,
        effective_date: date | None = None,
        source: PointSource = PointSource.MANUAL,
        reference_id: int | None = None,
        created_by: int | None = None,
    ) -> PointEvent:
        """Add one signed event. Zero is a valid value; nothing here commits."""
        if not organization_id:
            raise ValidationFailure("organization_id is required")
        if participant_id is None and group_id is None:
            raise ValidationFailure("A point event needs a participant or a group")
        _require_int(value, "value")

        event = PointEvent(
            organization_id=organization_id,
            participant_id=participant_id,
            group_id=group_id,
            value=value,
            effective_date=effective_date or today(),
            source=source,
            reference_id=reference_id,
            created_by_user_id=created_by,
        )
        self.session.add(event)
        self.session.flush()
        LedgerMonitoring.POINT_EVENTS_COUNTER.labels(source=source.value).inc()
        current_app.logger.debug(f"Appended {event!r} ({source.value})")
        return event

    def award_participant(
        self,
        participant_id: int,
        value: int,
        organization_id: int,
        effective_date: date | None = None,
        created_by: int | None = None,
    ) -> PointEvent:
        """Manual award attributed to the participant's current group."""
        if not self.is_member(participant_id, organization_id):
            raise NotFound(f"Participant {participant_id} not found")
        return self.append(
            organization_id,
            value,
            participant_id=participant_id,
            group_id=self.current_group_id(participant_id, organization_id),
            effective_date=effective_date,
            source=PointSource.MANUAL,
            created_by=created_by,
        )

    def award_group(
        self,
        group_id: int,
        value: int,
        organization_id: int,
        effective_date: date | None = None,
        attendance_date: date | None = None,
        created_by: int | None = None,
    ) -> GroupAward:
        """
        Award points to a group and fan the same value out to its members.

        Membership is read at award time. When ``attendance_date`` is given and
        attendance was taken that day, only members marked present or late
        receive their share.
        """
        group = self.session.query(Group).filter_by(id=group_id, organization_id=organization_id).first()
        if group is None:
            raise NotFound(f"Group {group_id} not found")
        effective_date = effective_date or today()

        group_event = self.append(
            organization_id,
            value,
            group_id=group_id,
            effective_date=effective_date,
            source=PointSource.GROUP_AWARD,
            created_by=created_by,
        )
        award = GroupAward(group_id, value, effective_date, group_event)

        member_ids = self.group_member_ids(group_id, organization_id)
        eligible = set(member_ids)
        if attendance_date is not None and member_ids:
            eligible = self._attending(member_ids, attendance_date, organization_id)

        for participant_id in member_ids:
            if participant_id not in eligible:
                award.skipped_participant_ids.append(participant_id)
                continue
            award.member_events.append(
                self.append(
                    organization_id,
                    value,
                    participant_id=participant_id,
                    group_id=group_id,
                    effective_date=effective_date,
                    source=PointSource.GROUP_AWARD,
                    created_by=created_by,
                )
            )
        return award

    def _attending(self, member_ids: list[int], attendance_date: date, organization_id: int) -> set[int]:
        taken = (
            self.session.query(AttendanceRecord.id)
            .filter_by(organization_id=organization_id, date=attendance_date)
            .first()
        )
        if taken is None:
            return set(member_ids)
        rows = (
            self.session.query(AttendanceRecord.participant_id)
            .filter(
                AttendanceRecord.organization_id == organization_id,
                AttendanceRecord.date == attendance_date,
                AttendanceRecord.participant_id.in_(member_ids),
                AttendanceRecord.status.in_(SCORED_ATTENDANCE),
            )
            .all()
        )
        return {row.participant_id for row in rows}

    def apply_updates(
        self, updates: Iterable[dict[str, Any]], organization_id: int, created_by: int | None = None
    ) -> list[dict[str, Any]]:
        """
        Apply a batch of manual point updates in one transaction.

        Each update is ``{"type": "participant"|"group", "id", "points", "date"?}``.
        The batch is validated before anything is written; a missing participant
        or group aborts the whole batch.
        """
        parsed = [self._parse_update(update, index) for index, update in enumerate(updates)]
        if not parsed:
            raise ValidationFailure("No point updates provided")

        results = []
        with ledger_transaction(self.session, operation="points_update", organization_id=organization_id):
            for kind, subject_id, value, effective_date in parsed:
                if kind == SubjectType.GROUP.value:
                    award = self.award_group(
                        subject_id,
                        value,
                        organization_id,
                        effective_date=effective_date,
                        attendance_date=effective_date,
                        created_by=created_by,
                    )
                    results.append(
                        {
                            "type": kind,
                            "id": subject_id,
                            "points": value,
                            "date": award.effective_date.isoformat(),
                            "member_ids": award.member_ids,
                            "skipped_participant_ids": award.skipped_participant_ids,
                        }
                    )
                else:
                    event = self.award_participant(
                        subject_id, value, organization_id, effective_date=effective_date, created_by=created_by
                    )
                    results.append(
                        {
                            "type": kind,
                            "id": subject_id,
                            "points": value,
                            "date": event.effective_date.isoformat(),
                            "group_id": event.group_id,
                        }
                    )

        for result in results:
            subject = SubjectType(result["type"])
            result["total_points"] = self.total_for(subject, result["id"], organization_id)
            if subject is SubjectType.GROUP:
                result["member_totals"] = {
                    participant_id: self.total_for(SubjectType.PARTICIPANT, participant_id, organization_id)
                    for participant_id in result["member_ids"]
                }
        current_app.logger.info(f"Applied {len(results)} point update(s) for organization {organization_id}")
        return results

    @staticmethod
    def _parse_update(update: Any, index: int) -> tuple[str, int, int, date | None]:
        if not isinstance(update, dict):
            raise ValidationFailure("Invalid point update", details={str(index): "must be an object"})
        kind = update.get("type")
        if kind not in (SubjectType.PARTICIPANT.value, SubjectType.GROUP.value):
            raise ValidationFailure("Invalid point update", details={str(index): "type must be participant or group"})
        subject_id = update.get("id")
        value = update.get("points")
        if isinstance(subject_id, bool) or not isinstance(subject_id, int):
            raise ValidationFailure("Invalid point update", details={str(index): "id must be an integer"})
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationFailure("Invalid point update", details={str(index): "points must be an integer"})
        effective_date = None
        if update.get("date"):
            try:
                effective_date = date.fromisoformat(str(update["date"]))
            except ValueError:
                raise ValidationFailure("Invalid point update", details={str(index): "date must be YYYY-MM-DD"})
        return kind, subject_id, value, effective_date

    # -- readers ------------------------------------------------------------

    def total_for(self, subject_type: SubjectType | str, subject_id: int | None, organization_id: int) -> int:
        """Sum of events for a participant, a group's own ledger, or a whole organization."""
        try:
            subject_type = SubjectType(subject_type)
        except ValueError:
            raise ValidationFailure(f"Unknown subject type {subject_type!r}")

        query = self.session.query(func.coalesce(func.sum(PointEvent.value), 0)).filter(
            PointEvent.organization_id == organization_id
        )
        if subject_type is SubjectType.PARTICIPANT:
            query = query.filter(PointEvent.participant_id == subject_id)
        elif subject_type is SubjectType.GROUP:
            query = query.filter(PointEvent.group_id == subject_id, PointEvent.participant_id.is_(None))
        return int(query.scalar() or 0)

    def _participant_totals_query(self, organization_id: int):
        total = func.coalesce(func.sum(PointEvent.value), 0).label("total_points")
        return (
            self.session.query(
                Participant.id,
                Participant.first_name,
                Participant.last_name,
                ParticipantGroup.group_id,
                total,
            )
            .join(
                ParticipantOrganization,
                and_(
                    ParticipantOrganization.participant_id == Participant.id,
                    ParticipantOrganization.organization_id == organization_id,
                ),
            )
            .outerjoin(
                ParticipantGroup,
                and_(
                    ParticipantGroup.participant_id == Participant.id,
                    ParticipantGroup.organization_id == organization_id,
                ),
            )
            .outerjoin(
                PointEvent,
                and_(PointEvent.participant_id == Participant.id, PointEvent.organization_id == organization_id),
            )
            .group_by(Participant.id, Participant.first_name, Participant.last_name, ParticipantGroup.group_id)
        )

    def _group_totals_query(self, organization_id: int):
        member_count = (
            select(func.count(ParticipantGroup.id))
            .where(ParticipantGroup.group_id == Group.id, ParticipantGroup.organization_id == organization_id)
            .correlate(Group)
            .scalar_subquery()
            .label("member_count")
        )
        total = func.coalesce(func.sum(PointEvent.value), 0).label("total_points")
        return (
            self.session.query(Group.id, Group.name, member_count, total)
            .outerjoin(
                PointEvent,
                and_(
                    PointEvent.group_id == Group.id,
                    PointEvent.organization_id == organization_id,
                    PointEvent.participant_id.is_(None),
                ),
            )
            .filter(Group.organization_id == organization_id)
            .group_by(Group.id, Group.name)
        )

    def participant_totals(self, organization_id: int) -> list[dict[str, Any]]:
        rows = self._participant_totals_query(organization_id).order_by(
            Participant.first_name, Participant.last_name
        )
        return [
            {
                "id": row.id,
                "first_name": row.first_name,
                "last_name": row.last_name,
                "group_id": row.group_id,
                "total_points": int(row.total_points),
            }
            for row in rows
        ]

    def group_totals(self, organization_id: int) -> list[dict[str, Any]]:
        rows = self._group_totals_query(organization_id).order_by(Group.name)
        return [
            {
                "id": row.id,
                "name": row.name,
                "member_count": int(row.member_count or 0),
                "total_points": int(row.total_points),
            }
            for row in rows
        ]

    def leaderboard(self, organization_id: int, kind: str = "individuals", limit: int | None = None) -> list[dict]:
        if kind not in LEADERBOARD_KINDS:
            raise ValidationFailure(f"Leaderboard type must be one of {', '.join(LEADERBOARD_KINDS)}")
        max_limit = current_app.config.get("LEADERBOARD_MAX_LIMIT", 100)
        limit = limit or current_app.config.get("LEADERBOARD_DEFAULT_LIMIT", 10)
        limit = max(1, min(int(limit), max_limit))

        if kind == "groups":
            rows = (
                self._group_totals_query(organization_id)
                .order_by(desc("total_points"), Group.name)
                .limit(limit)
                .all()
            )
            return [
                {"rank": rank, "id": row.id, "name": row.name, "total_points": int(row.total_points)}
                for rank, row in enumerate(rows, start=1)
            ]

        rows = (
            self._participant_totals_query(organization_id)
            .order_by(desc("total_points"), Participant.first_name, Participant.last_name)
            .limit(limit)
            .all()
        )
        return [
            {
                "rank": rank,
                "id": row.id,
                "name": f"{row.first_name} {row.last_name}",
                "group_id": row.group_id,
                "total_points": int(row.total_points),
            }
            for rank, row in enumerate(rows, start=1)
        ]

    def history(
        self,
        organization_id: int,
        participant_id: int | None = None,
        group_id: int | None = None,
        limit: int = 50,
    ) -> list[PointEvent]:
        """Most recent events first."""
        query = self.session.query(PointEvent).filter(PointEvent.organization_id == organization_id)
        if participant_id is not None:
            query = query.filter(PointEvent.participant_id == participant_id)
        if group_id is not None:
            query = query.filter(PointEvent.group_id == group_id)
        return query.order_by(PointEvent.effective_date.desc(), PointEvent.id.desc()).limit(limit).all()
