# troop_app/services/attendance.py
"""
Attendance tracking with point deltas.

Changing a status appends exactly the difference between the points of the new
and the previous status, so the participant's total always equals the points of
their current statuses plus everything else they earned.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from troop_app.models import AttendanceRecord, AttendanceStatus, PointSource, db
from troop_app.services.errors import NotFound, ValidationFailure
from troop_app.services.point_ledger import SCORED_ATTENDANCE, PointLedger
from troop_app.services.point_rules import PointRulesProvider, RulesConfig
from troop_app.services.transaction import ledger_transaction


def parse_status(value: Any) -> AttendanceStatus:
    if isinstance(value, AttendanceStatus):
        return value
    try:
        return AttendanceStatus(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(status.value for status in AttendanceStatus)
        raise ValidationFailure(f"Invalid attendance status {value!r}", details={"status": f"must be one of {allowed}"})


def _status_label(status: AttendanceStatus | None) -> str:
    return status.value if status is not None else "none"


@dataclass
class AttendanceChange:
    """Result of setting one participant's status for one date."""

    participant_id: int
    date: date
    previous_status: AttendanceStatus | None
    new_status: AttendanceStatus | None
    delta: int = 0
    point_event_id: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        payload = {
            "participant_id": self.participant_id,
            "date": self.date.isoformat(),
            "previous_status": _status_label(self.previous_status),
            "new_status": _status_label(self.new_status),
            "delta": self.delta,
            "point_event_id": self.point_event_id,
        }
        if self.error:
            payload["error"] = self.error
        return payload


class AttendanceTracker:
    def __init__(self, session: Session | None = None):
        self.session: Session = session or db.session
        self.ledger = PointLedger(self.session)
        self.rules_provider = PointRulesProvider(self.session)

    def set_status(
        self, participant_id: int, on_date: date, new_status, organization_id: int, actor=None
    ) -> AttendanceChange:
        """Record one status change and its point delta in a single transaction."""
        status = parse_status(new_status)
        rules = self.rules_provider.get_rules(organization_id).rules
        with ledger_transaction(
            self.session,
            operation="attendance_update",
            organization_id=organization_id,
            subject=f"participant {participant_id} on {on_date}",
        ):
            change = self._apply(participant_id, on_date, status, organization_id, rules, _actor_id(actor))
        self._log_change(change, organization_id)
        return change

    def set_status_batch(
        self, participant_ids: Iterable[int], on_date: date, new_status, organization_id: int, actor=None
    ) -> list[AttendanceChange]:
        """
        Apply the same status to several participants in one transaction.

        A participant outside the organization is reported on its own item;
        database errors roll back the whole batch.
        """
        status = parse_status(new_status)
        participant_ids = list(participant_ids)
        if not participant_ids:
            raise ValidationFailure("No participants provided", details={"participant_id": "required"})

        rules = self.rules_provider.get_rules(organization_id).rules
        actor_id = _actor_id(actor)
        changes = []
        with ledger_transaction(
            self.session,
            operation="attendance_batch_update",
            organization_id=organization_id,
            subject=f"{len(participant_ids)} participants on {on_date}",
        ):
            for participant_id in participant_ids:
                try:
                    changes.append(self._apply(participant_id, on_date, status, organization_id, rules, actor_id))
                except NotFound:
                    changes.append(AttendanceChange(participant_id, on_date, None, status, error="not_found"))

        for change in changes:
            if change.ok:
                self._log_change(change, organization_id)
            else:
                current_app.logger.warning(
                    f"Attendance not recorded for participant {change.participant_id} "
                    f"in organization {organization_id}: {change.error}"
                )
        return changes

    def _apply(
        self,
        participant_id: int,
        on_date: date,
        status: AttendanceStatus,
        organization_id: int,
        rules: RulesConfig,
        actor_id: int | None,
    ) -> AttendanceChange:
        if not self.ledger.is_member(participant_id, organization_id):
            raise NotFound(f"Participant {participant_id} not found")

        record = self._locked_record(participant_id, on_date, organization_id)
        previous = record.status if record is not None else None
        if record is None:
            try:
                with self.session.begin_nested():
                    record = AttendanceRecord(
                        participant_id=participant_id,
                        organization_id=organization_id,
                        date=on_date,
                        status=status,
                    )
                    self.session.add(record)
            except IntegrityError:
                # Another writer inserted the row first; continue from its status
                record = self._locked_record(participant_id, on_date, organization_id)
                previous = record.status
                record.status = status
        else:
            record.status = status
        self.session.flush()

        change = AttendanceChange(participant_id, on_date, previous, status)
        change.delta = rules.points_for_status(status) - rules.points_for_status(previous)
        if change.delta:
            event = self.ledger.append(
                organization_id,
                change.delta,
                participant_id=participant_id,
                group_id=self.ledger.current_group_id(participant_id, organization_id),
                effective_date=on_date,
                source=PointSource.ATTENDANCE,
                created_by=actor_id,
            )
            change.point_event_id = event.id
        return change

    def _locked_record(self, participant_id: int, on_date: date, organization_id: int) -> AttendanceRecord | None:
        return (
            self.session.query(AttendanceRecord)
            .filter_by(participant_id=participant_id, organization_id=organization_id, date=on_date)
            .with_for_update()
            .first()
        )

    @staticmethod
    def _log_change(change: AttendanceChange, organization_id: int) -> None:
        current_app.logger.info(
            f"Attendance org {organization_id} participant {change.participant_id} {change.date}: "
            f"{_status_label(change.previous_status)} -> {_status_label(change.new_status)}, "
            f"points {change.delta:+d}"
        )

    def records_for(
        self, organization_id: int, on_date: date | None = None, participant_id: int | None = None
    ) -> list[AttendanceRecord]:
        query = self.session.query(AttendanceRecord).filter(AttendanceRecord.organization_id == organization_id)
        if on_date is not None:
            query = query.filter(AttendanceRecord.date == on_date)
        if participant_id is not None:
            query = query.filter(AttendanceRecord.participant_id == participant_id)
        return query.order_by(AttendanceRecord.date.desc(), AttendanceRecord.participant_id).all()

    def dates(self, organization_id: int) -> list[date]:
        rows = (
            self.session.query(AttendanceRecord.date)
            .filter(AttendanceRecord.organization_id == organization_id)
            .distinct()
            .order_by(AttendanceRecord.date.desc())
            .all()
        )
        return [row.date for row in rows]

    def carry_forward(self, from_date: date, to_date: date, organization_id: int, actor=None) -> list[AttendanceChange]:
        """Copy present and late statuses to a date where those participants have no record yet."""
        if from_date == to_date:
            raise ValidationFailure("from_date and to_date must differ")

        rules = self.rules_provider.get_rules(organization_id).rules
        actor_id = _actor_id(actor)
        changes = []
        with ledger_transaction(
            self.session,
            operation="attendance_carry_forward",
            organization_id=organization_id,
            subject=f"{from_date} -> {to_date}",
        ):
            source = (
                self.session.query(AttendanceRecord)
                .filter(
                    AttendanceRecord.organization_id == organization_id,
                    AttendanceRecord.date == from_date,
                    AttendanceRecord.status.in_(SCORED_ATTENDANCE),
                )
                .order_by(AttendanceRecord.participant_id)
                .all()
            )
            existing = {
                row.participant_id
                for row in self.session.query(AttendanceRecord.participant_id).filter_by(
                    organization_id=organization_id, date=to_date
                )
            }
            for record in source:
                if record.participant_id in existing:
                    continue
                changes.append(
                    self._apply(record.participant_id, to_date, record.status, organization_id, rules, actor_id)
                )

        current_app.logger.info(
            f"Carried forward {len(changes)} attendance record(s) from {from_date} to {to_date} "
            f"for organization {organization_id}"
        )
        return changes

    def clear_date(self, on_date: date, organization_id: int, actor=None) -> list[AttendanceChange]:
        """Delete every record of a date, reversing the points each status carried."""
        rules = self.rules_provider.get_rules(organization_id).rules
        actor_id = _actor_id(actor)
        changes = []
        with ledger_transaction(
            self.session, operation="attendance_clear", organization_id=organization_id, subject=str(on_date)
        ):
            records = (
                self.session.query(AttendanceRecord)
                .filter_by(organization_id=organization_id, date=on_date)
                .with_for_update()
                .all()
            )
            for record in records:
                change = AttendanceChange(record.participant_id, on_date, record.status, None)
                change.delta = -rules.points_for_status(record.status)
                if change.delta:
                    event = self.ledger.append(
                        organization_id,
                        change.delta,
                        participant_id=record.participant_id,
                        group_id=self.ledger.current_group_id(record.participant_id, organization_id),
                        effective_date=on_date,
                        source=PointSource.ATTENDANCE,
                        created_by=actor_id,
                    )
                    change.point_event_id = event.id
                self.session.delete(record)
                changes.append(change)

        current_app.logger.info(
            f"Cleared {len(changes)} attendance record(s) on {on_date} for organization {organization_id}"
        )
        return changes


def _actor_id(actor) -> int | None:
    return getattr(actor, "id", None) if actor is not None else None
