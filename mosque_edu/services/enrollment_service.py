from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import update
from sqlalchemy.orm import Session

from mosque_edu.config import settings
from mosque_edu.core.money import ZERO, to_money
from mosque_edu.core.time_provider import TimeProvider, default_time_provider
from mosque_edu.metrics import timed_service
from mosque_edu.models import (
    Classroom,
    Enrollment,
    EnrollmentPaymentStatus,
    EnrollmentStatus,
    Member,
    MonthlyPaymentRecord,
    ScheduledClass,
    Teacher,
)
from mosque_edu.services.ledger_service import materialize_ledger


logger = logging.getLogger(__name__)


class EnrollmentValidationError(ValueError):
    pass


class EnrollmentRejectedError(ValueError):
    pass


class EnrollmentNotFoundError(LookupError):
    pass


class StaleEnrollmentError(RuntimeError):
    pass


@dataclass
class EnrollResult:
    enrollment: Enrollment
    ledger_records: list[MonthlyPaymentRecord] = field(default_factory=list)
    billing_error: str | None = None

    @property
    def degraded(self) -> bool:
        return self.billing_error is not None


@dataclass
class MoveResult:
    target_class_id: int
    transferred_enrollment_ids: list[int] = field(default_factory=list)
    created_enrollment_ids: list[int] = field(default_factory=list)
    removed_enrollment_ids: list[int] = field(default_factory=list)


def get_enrollment(db: Session, *, org_id: int, enrollment_id: int) -> Enrollment:
    row = (
        db.query(Enrollment)
        .filter(Enrollment.id == int(enrollment_id), Enrollment.organization_id == int(org_id))
        .first()
    )
    if not row:
        raise EnrollmentNotFoundError('Enrollment not found')
    return row


def _get_member(db: Session, org_id: int, member_id: int) -> Member:
    member = db.query(Member).filter(Member.id == int(member_id), Member.organization_id == int(org_id)).first()
    if not member:
        raise EnrollmentValidationError('Member not found')
    return member


def _get_class(db: Session, org_id: int, class_id: int) -> ScheduledClass:
    row = (
        db.query(ScheduledClass)
        .filter(ScheduledClass.id == int(class_id), ScheduledClass.organization_id == int(org_id))
        .first()
    )
    if not row:
        raise EnrollmentValidationError('Class not found')
    return row


def is_teacher(db: Session, *, org_id: int, member_id: int) -> bool:
    return (
        db.query(Teacher.id)
        .filter(Teacher.organization_id == int(org_id), Teacher.member_id == int(member_id))
        .first()
        is not None
    )


def _normalize_fee(monthly_fee):
    if monthly_fee is None or monthly_fee == '':
        return None
    try:
        fee = to_money(monthly_fee)
    except ValueError as exc:
        raise EnrollmentValidationError(str(exc)) from exc
    if fee < ZERO:
        raise EnrollmentValidationError('Monthly fee cannot be negative')
    return fee if fee > ZERO else None


@timed_service('enroll')
def enroll(
    db: Session,
    *,
    org_id: int,
    member_id: int,
    class_id: int,
    monthly_fee=None,
    start_date: date | None = None,
    end_date: date | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> EnrollResult:
    fee = _normalize_fee(monthly_fee)
    if start_date and end_date and end_date < start_date:
        raise EnrollmentValidationError('End date cannot be before start date')

    member = _get_member(db, org_id, member_id)
    scheduled_class = _get_class(db, org_id, class_id)

    # Teacher/student exclusivity is checked here, not by a table constraint.
    if is_teacher(db, org_id=org_id, member_id=member.id):
        logger.info('enroll_rejected_teacher org_id=%s member_id=%s', org_id, member.id)
        raise EnrollmentRejectedError(
            f'{member.full_name} is a teacher and cannot be enrolled as a student'
        )
    existing = (
        db.query(Enrollment.id)
        .filter(Enrollment.organization_id == int(org_id), Enrollment.member_id == member.id)
        .first()
    )
    if existing is not None:
        raise EnrollmentRejectedError(f'{member.full_name} is already enrolled')

    enrollment = Enrollment(
        organization_id=int(org_id),
        member_id=member.id,
        scheduled_class_id=scheduled_class.id,
        monthly_fee=fee,
        start_date=start_date,
        end_date=end_date,
        enrollment_date=time_provider.today(),
        amount_paid=ZERO,
        payment_status=EnrollmentPaymentStatus.UNPAID.value,
        status=EnrollmentStatus.ACTIVE.value,
        version=1,
    )
    db.add(enrollment)
    db.commit()
    db.refresh(enrollment)
    logger.info(
        'enrollment_created org_id=%s enrollment_id=%s member_id=%s class_id=%s',
        org_id,
        enrollment.id,
        member.id,
        scheduled_class.id,
    )

    ledger = materialize_ledger(db, enrollment, time_provider=time_provider)
    return EnrollResult(enrollment=enrollment, ledger_records=ledger.records, billing_error=ledger.error)


def _bump_version(db: Session, enrollment: Enrollment, **values) -> None:
    result = db.execute(
        update(Enrollment)
        .where(Enrollment.id == enrollment.id, Enrollment.version == enrollment.version)
        .values(version=enrollment.version + 1, **values)
    )
    if result.rowcount != 1:
        db.rollback()
        raise StaleEnrollmentError('Enrollment was modified concurrently; reload and retry')


def transfer_enrollment(
    db: Session,
    *,
    org_id: int,
    enrollment_id: int,
    new_class_id: int,
    commit: bool = True,
) -> Enrollment:
    """Move an enrollment to another class in place, keeping its payment history."""
    enrollment = get_enrollment(db, org_id=org_id, enrollment_id=enrollment_id)
    target = _get_class(db, org_id, new_class_id)
    if enrollment.scheduled_class_id == target.id:
        return enrollment

    previous_class_id = enrollment.scheduled_class_id
    _bump_version(db, enrollment, scheduled_class_id=target.id)
    db.execute(
        update(MonthlyPaymentRecord)
        .where(MonthlyPaymentRecord.enrollment_id == enrollment.id)
        .values(class_id=target.id)
    )
    if commit:
        db.commit()
    db.refresh(enrollment)
    logger.info(
        'enrollment_transferred enrollment_id=%s from_class_id=%s to_class_id=%s',
        enrollment.id,
        previous_class_id,
        target.id,
    )
    return enrollment


def _ensure_classroom(db: Session, org_id: int, classroom_id: int) -> None:
    if not db.query(Classroom.id).filter(Classroom.id == int(classroom_id), Classroom.organization_id == int(org_id)).first():
        raise EnrollmentValidationError('Classroom not found')


def _resolve_target_class(db: Session, org_id: int, classroom_id: int, *, time_provider: TimeProvider) -> ScheduledClass:
    target = (
        db.query(ScheduledClass)
        .filter(ScheduledClass.organization_id == int(org_id), ScheduledClass.classroom_id == int(classroom_id))
        .order_by(ScheduledClass.id.asc())
        .first()
    )
    if target:
        return target
    target = ScheduledClass(
        organization_id=int(org_id),
        classroom_id=int(classroom_id),
        name=f'{settings.default_class_name_prefix} - {time_provider.today().year}',
    )
    db.add(target)
    db.flush()
    logger.info('default_class_created org_id=%s classroom_id=%s class_id=%s', org_id, classroom_id, target.id)
    return target


@timed_service('move_students')
def move_students(
    db: Session,
    *,
    org_id: int,
    member_ids: list[int],
    source_classroom_id: int,
    target_classroom_id: int,
    time_provider: TimeProvider = default_time_provider,
) -> MoveResult:
    if not member_ids:
        raise EnrollmentValidationError('Select at least one student')
    if int(source_classroom_id) == int(target_classroom_id):
        raise EnrollmentValidationError('Source and target classroom must differ')

    _ensure_classroom(db, org_id, source_classroom_id)
    _ensure_classroom(db, org_id, target_classroom_id)
    target = _resolve_target_class(db, org_id, target_classroom_id, time_provider=time_provider)
    source_class_ids = [
        class_id
        for (class_id,) in db.query(ScheduledClass.id).filter(
            ScheduledClass.organization_id == int(org_id),
            ScheduledClass.classroom_id == int(source_classroom_id),
        )
    ]

    result = MoveResult(target_class_id=target.id)
    try:
        for member_id in dict.fromkeys(int(m) for m in member_ids):
            _get_member(db, org_id, member_id)
            current = []
            if source_class_ids:
                current = (
                    db.query(Enrollment)
                    .filter(
                        Enrollment.organization_id == int(org_id),
                        Enrollment.member_id == member_id,
                        Enrollment.scheduled_class_id.in_(source_class_ids),
                    )
                    .order_by(Enrollment.id.asc())
                    .all()
                )
            if current:
                keep, extras = current[0], current[1:]
                transfer_enrollment(db, org_id=org_id, enrollment_id=keep.id, new_class_id=target.id, commit=False)
                result.transferred_enrollment_ids.append(keep.id)
                for extra in extras:
                    result.removed_enrollment_ids.append(extra.id)
                    db.delete(extra)
                continue

            fresh = Enrollment(
                organization_id=int(org_id),
                member_id=member_id,
                scheduled_class_id=target.id,
                enrollment_date=time_provider.today(),
                amount_paid=ZERO,
                payment_status=EnrollmentPaymentStatus.UNPAID.value,
                status=EnrollmentStatus.ACTIVE.value,
                version=1,
            )
            db.add(fresh)
            db.flush()
            result.created_enrollment_ids.append(fresh.id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        'students_moved org_id=%s source_classroom_id=%s target_class_id=%s transferred=%s created=%s removed=%s',
        org_id,
        source_classroom_id,
        target.id,
        len(result.transferred_enrollment_ids),
        len(result.created_enrollment_ids),
        len(result.removed_enrollment_ids),
    )
    return result


def complete_enrollment(db: Session, *, org_id: int, enrollment_id: int) -> Enrollment:
    enrollment = get_enrollment(db, org_id=org_id, enrollment_id=enrollment_id)
    _bump_version(db, enrollment, status=EnrollmentStatus.COMPLETED.value)
    db.commit()
    db.refresh(enrollment)
    return enrollment


def withdraw(db: Session, *, org_id: int, enrollment_id: int) -> None:
    """Hard delete; the monthly ledger goes with it."""
    enrollment = get_enrollment(db, org_id=org_id, enrollment_id=enrollment_id)
    db.delete(enrollment)
    db.commit()
    logger.info('enrollment_withdrawn org_id=%s enrollment_id=%s', org_id, enrollment_id)


def list_enrollments(
    db: Session,
    *,
    org_id: int,
    class_id: int | None = None,
    member_id: int | None = None,
) -> list[Enrollment]:
    query = db.query(Enrollment).filter(Enrollment.organization_id == int(org_id))
    if class_id is not None:
        query = query.filter(Enrollment.scheduled_class_id == int(class_id))
    if member_id is not None:
        query = query.filter(Enrollment.member_id == int(member_id))
    return query.order_by(Enrollment.created_at.desc(), Enrollment.id.desc()).all()
