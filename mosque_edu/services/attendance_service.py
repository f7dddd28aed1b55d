from __future__ import annotations

import logging
from datetime import date, time
from typing import Iterable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mosque_edu.core.time_provider import TimeProvider, default_time_provider
from mosque_edu.metrics import timed_service
from mosque_edu.models import AttendanceRecord, AttendanceStatus, Member, ScheduledClass


logger = logging.getLogger(__name__)

VALID_STATUSES = frozenset(status.value for status in AttendanceStatus)


class AttendanceValidationError(ValueError):
    pass


class AttendanceConflictError(ValueError):
    pass


class AttendanceNotFoundError(LookupError):
    pass


def normalize_status(value) -> str:
    status = str(value or '').strip().lower()
    if status not in VALID_STATUSES:
        raise AttendanceValidationError(f'Invalid attendance status: {value!r}')
    return status


def _normalize_statuses(status: str | Iterable[str] | None) -> list[str]:
    if status is None:
        return []
    if isinstance(status, str):
        return [normalize_status(status)]
    return [normalize_status(item) for item in status]


def _ensure_class(db: Session, org_id: int, class_id: int) -> ScheduledClass:
    row = (
        db.query(ScheduledClass)
        .filter(ScheduledClass.id == int(class_id), ScheduledClass.organization_id == int(org_id))
        .first()
    )
    if not row:
        raise AttendanceValidationError('Class not found')
    return row


def _ensure_members(db: Session, org_id: int, member_ids: Iterable[int]) -> None:
    wanted = {int(member_id) for member_id in member_ids}
    if not wanted:
        return
    found = {
        member_id
        for (member_id,) in db.query(Member.id).filter(Member.organization_id == int(org_id), Member.id.in_(wanted))
    }
    missing = sorted(wanted - found)
    if missing:
        raise AttendanceValidationError(f'Unknown member ids: {missing}')


def list_attendance(
    db: Session,
    *,
    org_id: int,
    class_id: int | None = None,
    member_id: int | None = None,
    status: str | Iterable[str] | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[AttendanceRecord]:
    query = db.query(AttendanceRecord).filter(AttendanceRecord.organization_id == int(org_id))
    if class_id is not None:
        query = query.filter(AttendanceRecord.scheduled_class_id == int(class_id))
    if member_id is not None:
        query = query.filter(AttendanceRecord.member_id == int(member_id))
    statuses = _normalize_statuses(status)
    if statuses:
        query = query.filter(AttendanceRecord.status.in_(statuses))
    if date_from is not None:
        query = query.filter(AttendanceRecord.attendance_date >= date_from)
    if date_to is not None:
        query = query.filter(AttendanceRecord.attendance_date <= date_to)
    return query.order_by(AttendanceRecord.attendance_date.desc(), AttendanceRecord.id.desc()).all()


def get_by_class_and_date(db: Session, *, org_id: int, class_id: int, attendance_date: date) -> list[AttendanceRecord]:
    return (
        db.query(AttendanceRecord)
        .filter(
            AttendanceRecord.organization_id == int(org_id),
            AttendanceRecord.scheduled_class_id == int(class_id),
            AttendanceRecord.attendance_date == attendance_date,
        )
        .order_by(AttendanceRecord.member_id.asc())
        .execution_options(populate_existing=True)
        .all()
    )


def get_by_member(
    db: Session,
    *,
    org_id: int,
    member_id: int,
    class_id: int | None = None,
) -> list[AttendanceRecord]:
    return list_attendance(db, org_id=org_id, member_id=member_id, class_id=class_id)


def get_attendance(db: Session, *, org_id: int, attendance_id: int) -> AttendanceRecord:
    row = (
        db.query(AttendanceRecord)
        .filter(AttendanceRecord.id == int(attendance_id), AttendanceRecord.organization_id == int(org_id))
        .first()
    )
    if not row:
        raise AttendanceNotFoundError('Attendance record not found')
    return row


def create_attendance(
    db: Session,
    *,
    org_id: int,
    class_id: int,
    member_id: int,
    attendance_date: date,
    status: str,
    notes: str | None = None,
    check_in_time: time | None = None,
    check_out_time: time | None = None,
) -> AttendanceRecord:
    normalized = normalize_status(status)
    _ensure_class(db, org_id, class_id)
    _ensure_members(db, org_id, [member_id])
    row = AttendanceRecord(
        organization_id=int(org_id),
        scheduled_class_id=int(class_id),
        member_id=int(member_id),
        attendance_date=attendance_date,
        status=normalized,
        notes=notes,
        check_in_time=check_in_time,
        check_out_time=check_out_time,
    )
    try:
        db.add(row)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning(
            'attendance_conflict_detected',
            extra={'class_id': int(class_id), 'member_id': int(member_id), 'attendance_date': attendance_date.isoformat()},
        )
        raise AttendanceConflictError('Attendance already recorded for this member, class and date') from exc
    db.refresh(row)
    return row


def update_attendance(
    db: Session,
    *,
    org_id: int,
    attendance_id: int,
    status: str | None = None,
    notes: str | None = None,
) -> AttendanceRecord:
    row = get_attendance(db, org_id=org_id, attendance_id=attendance_id)
    if status is not None:
        row.status = normalize_status(status)
    if notes is not None:
        row.notes = notes
    db.commit()
    db.refresh(row)
    return row


def delete_attendance(db: Session, *, org_id: int, attendance_id: int) -> None:
    row = get_attendance(db, org_id=org_id, attendance_id=attendance_id)
    db.delete(row)
    db.commit()


def _insert_statement_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == 'sqlite':
        from sqlalchemy.dialects.sqlite import insert
    elif dialect == 'postgresql':
        from sqlalchemy.dialects.postgresql import insert
    else:
        raise NotImplementedError(f'Attendance upsert is not supported on {dialect}')
    return insert(AttendanceRecord)


def _collapse_submission(records: Iterable[dict]) -> dict[int, dict]:
    """Validate a class submission and keep the last entry per member."""
    by_member: dict[int, dict] = {}
    for item in records:
        try:
            member_id = int(item['member_id'])
        except (KeyError, TypeError, ValueError) as exc:
            raise AttendanceValidationError('Each attendance entry needs a member_id') from exc
        by_member[member_id] = {
            'status': normalize_status(item.get('status')),
            'notes': item.get('notes'),
            'check_in_time': item.get('check_in_time'),
            'check_out_time': item.get('check_out_time'),
        }
    return by_member


@timed_service('bulk_upsert_attendance')
def bulk_upsert_attendance(
    db: Session,
    *,
    org_id: int,
    class_id: int,
    attendance_date: date,
    records: Iterable[dict],
    time_provider: TimeProvider = default_time_provider,
) -> list[AttendanceRecord]:
    by_member = _collapse_submission(records)
    if not by_member:
        return []
    _ensure_class(db, org_id, class_id)
    _ensure_members(db, org_id, by_member.keys())

    stamp = time_provider.utcnow_naive()
    stmt = _insert_statement_for(db)
    stmt = stmt.values(
        [
            {
                'organization_id': int(org_id),
                'scheduled_class_id': int(class_id),
                'member_id': member_id,
                'attendance_date': attendance_date,
                'created_at': stamp,
                'updated_at': stamp,
                **fields,
            }
            for member_id, fields in by_member.items()
        ]
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=['organization_id', 'scheduled_class_id', 'member_id', 'attendance_date'],
        set_={
            'status': stmt.excluded.status,
            'notes': stmt.excluded.notes,
            'check_in_time': stmt.excluded.check_in_time,
            'check_out_time': stmt.excluded.check_out_time,
            'updated_at': stmt.excluded.updated_at,
        },
    )
    try:
        db.execute(stmt)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(
        'attendance_upserted',
        extra={'org_id': int(org_id), 'class_id': int(class_id), 'rows': len(by_member)},
    )
    rows = get_by_class_and_date(db, org_id=org_id, class_id=class_id, attendance_date=attendance_date)
    return [row for row in rows if row.member_id in by_member]
