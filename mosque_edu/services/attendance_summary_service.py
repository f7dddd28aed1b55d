from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from mosque_edu.core.money import round_half_up
from mosque_edu.models import AttendanceRecord, AttendanceStatus


ATTENDED_STATUSES = (AttendanceStatus.PRESENT.value, AttendanceStatus.LATE.value)


def attendance_rate(attended: int, total: int) -> float:
    """Percentage of attended records, rounded half-up to one decimal."""
    if total <= 0:
        return 0.0
    return round_half_up(Decimal(int(attended)) * 100 / Decimal(int(total)), 1)


def _status_counts(query) -> dict[str, int]:
    """Count per status value present; statuses with no records are omitted."""
    counts: dict[str, int] = {}
    for status, count in query.group_by(AttendanceRecord.status).all():
        counts[str(status)] = counts.get(str(status), 0) + int(count)
    return counts


def class_summary(
    db: Session,
    *,
    org_id: int,
    class_id: int,
    date_from: date | None = None,
    date_to: date | None = None,
) -> dict:
    filters = [
        AttendanceRecord.organization_id == int(org_id),
        AttendanceRecord.scheduled_class_id == int(class_id),
    ]
    if date_from is not None:
        filters.append(AttendanceRecord.attendance_date >= date_from)
    if date_to is not None:
        filters.append(AttendanceRecord.attendance_date <= date_to)

    by_status = _status_counts(db.query(AttendanceRecord.status, func.count(AttendanceRecord.id)).filter(*filters))
    total_sessions = (
        db.query(func.count(func.distinct(AttendanceRecord.attendance_date))).filter(*filters).scalar() or 0
    )
    total_records = sum(by_status.values())
    attended = sum(by_status.get(status, 0) for status in ATTENDED_STATUSES)
    return {
        'total_sessions': int(total_sessions),
        'total_records': total_records,
        'by_status': by_status,
        'attendance_rate': attendance_rate(attended, total_records),
    }


def student_summary(
    db: Session,
    *,
    org_id: int,
    member_id: int,
    class_id: int | None = None,
) -> dict:
    query = db.query(AttendanceRecord.status, func.count(AttendanceRecord.id)).filter(
        AttendanceRecord.organization_id == int(org_id),
        AttendanceRecord.member_id == int(member_id),
    )
    if class_id is not None:
        query = query.filter(AttendanceRecord.scheduled_class_id == int(class_id))
    by_status = _status_counts(query)
    total = sum(by_status.values())
    attended = sum(by_status.get(status, 0) for status in ATTENDED_STATUSES)
    return {
        'total_classes': total,
        'attended': attended,
        'absent': by_status.get(AttendanceStatus.ABSENT.value, 0),
        'late': by_status.get(AttendanceStatus.LATE.value, 0),
        'excused': by_status.get(AttendanceStatus.EXCUSED.value, 0),
        'attendance_rate': attendance_rate(attended, total),
    }
