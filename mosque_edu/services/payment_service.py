from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from mosque_edu.config import settings
from mosque_edu.core.calendar_months import iter_months, month_end
from mosque_edu.core.money import MAX_MONEY, ZERO, to_money
from mosque_edu.core.time_provider import TimeProvider, default_time_provider
from mosque_edu.metrics import timed_service
from mosque_edu.models import (
    Donation,
    Enrollment,
    EnrollmentPaymentStatus,
    MonthlyPaymentRecord,
    MonthlyPaymentStatus,
)
from mosque_edu.services.enrollment_service import StaleEnrollmentError, get_enrollment
from mosque_edu.services.fund_service import education_fund_id
from mosque_edu.services.reconciliation_service import REVENUE_ENTRY_FAILED, log_reconciliation_issue


logger = logging.getLogger(__name__)

REVENUE_ENTRY_ERROR = 'Payment recorded, but the revenue entry could not be created'


class PaymentValidationError(ValueError):
    pass


class ConcurrentPaymentError(StaleEnrollmentError):
    pass


@dataclass
class PaymentResult:
    monthly_record: MonthlyPaymentRecord
    enrollment: Enrollment
    revenue_entry: Donation | None = None
    revenue_error: str | None = None

    @property
    def reconciliation_required(self) -> bool:
        return self.revenue_error is not None


@dataclass
class PaymentHistory:
    enrollment: Enrollment
    records: list[MonthlyPaymentRecord] = field(default_factory=list)
    total_due: Decimal = ZERO
    total_paid: Decimal = ZERO

    @property
    def total_outstanding(self) -> Decimal:
        return max(self.total_due - self.total_paid, ZERO)


@dataclass
class OutstandingMonth:
    enrollment_id: int
    member_id: int
    class_id: int | None
    member_name: str
    class_name: str
    month: int
    year: int
    amount_due: Decimal
    amount_paid: Decimal
    # False for months inside the enrollment range that were never billed.
    recorded: bool = True

    @property
    def outstanding(self) -> Decimal:
        return self.amount_due - self.amount_paid

    @property
    def due_date(self) -> date:
        return month_end(self.year, self.month)


def parse_payment_amount(amount) -> Decimal:
    if amount is None or isinstance(amount, bool):
        raise PaymentValidationError('Please enter a valid payment amount')
    try:
        value = to_money(amount)
    except (ValueError, ArithmeticError) as exc:
        raise PaymentValidationError('Please enter a valid payment amount') from exc
    if value <= ZERO:
        raise PaymentValidationError('Please enter a valid payment amount')
    return value


def monthly_status(amount_paid, amount_due) -> str:
    if to_money(amount_paid) >= to_money(amount_due):
        return MonthlyPaymentStatus.PAID.value
    return MonthlyPaymentStatus.UNPAID.value


def enrollment_payment_status(amount_paid, total_due) -> str:
    paid = to_money(amount_paid)
    if paid <= ZERO:
        return EnrollmentPaymentStatus.UNPAID.value
    if paid >= to_money(total_due):
        return EnrollmentPaymentStatus.PAID.value
    return EnrollmentPaymentStatus.PARTIAL.value


def total_tuition_due(enrollment: Enrollment, billed_months: int) -> Decimal:
    fee = to_money(enrollment.monthly_fee)
    if fee > ZERO:
        return fee * billed_months
    scheduled_class = enrollment.scheduled_class
    course = scheduled_class.course if scheduled_class is not None else None
    if course is not None and course.tuition_fee is not None:
        return to_money(course.tuition_fee)
    return ZERO


def tuition_memo(enrollment: Enrollment, month: int, year: int) -> str:
    member = enrollment.member
    name = member.full_name if member is not None else ''
    class_name = enrollment.scheduled_class.name if enrollment.scheduled_class is not None else ''
    return f'Tuition for {name or "Student"} - {class_name or "Class"} ({month}/{year})'


def _record_date(status: str, year: int, month: int, on_date: date) -> date:
    if status == MonthlyPaymentStatus.PAID.value:
        return month_end(year, month)
    return on_date


def _apply_to_month(
    db: Session,
    enrollment: Enrollment,
    record: MonthlyPaymentRecord | None,
    paid: Decimal,
    on_date: date,
) -> MonthlyPaymentRecord:
    year, month = on_date.year, on_date.month
    if record is None:
        due = to_money(enrollment.monthly_fee)
        status = monthly_status(paid, due)
        record = MonthlyPaymentRecord(
            organization_id=enrollment.organization_id,
            enrollment_id=enrollment.id,
            class_id=enrollment.scheduled_class_id,
            member_id=enrollment.member_id,
            month=month,
            year=year,
            amount_due=due,
            amount_paid=paid,
            payment_status=status,
            payment_date=_record_date(status, year, month, on_date),
        )
        db.add(record)
        # A concurrent insert for the same month fails here on the unique key.
        db.flush()
        return record

    previous_paid = to_money(record.amount_paid)
    new_paid = previous_paid + paid
    status = monthly_status(new_paid, record.amount_due)
    result = db.execute(
        update(MonthlyPaymentRecord)
        .where(MonthlyPaymentRecord.id == record.id, MonthlyPaymentRecord.amount_paid == previous_paid)
        .values(
            amount_paid=new_paid,
            payment_status=status,
            payment_date=_record_date(status, year, month, on_date),
        )
    )
    if result.rowcount != 1:
        raise ConcurrentPaymentError('Monthly payment was modified concurrently; reload and retry')
    return record


def _apply_to_enrollment(db: Session, enrollment: Enrollment, paid: Decimal, billed_months: int) -> None:
    new_paid = to_money(enrollment.amount_paid) + paid
    status = enrollment_payment_status(new_paid, total_tuition_due(enrollment, billed_months))
    result = db.execute(
        update(Enrollment)
        .where(Enrollment.id == enrollment.id, Enrollment.version == enrollment.version)
        .values(amount_paid=new_paid, payment_status=status, version=enrollment.version + 1)
    )
    if result.rowcount != 1:
        raise ConcurrentPaymentError('Enrollment was modified concurrently; reload and retry')


def _record_revenue_entry(
    db: Session,
    *,
    org_id: int,
    enrollment: Enrollment,
    amount: Decimal,
    on_date: date,
    payment_method: str,
    time_provider: TimeProvider,
) -> tuple[Donation | None, str | None]:
    try:
        fund_id = education_fund_id(db, org_id=org_id)
        member = enrollment.member
        entry = Donation(
            organization_id=int(org_id),
            member_id=enrollment.member_id,
            household_id=member.household_id if member is not None else None,
            fund_id=fund_id,
            enrollment_id=enrollment.id,
            amount=amount,
            payment_method=payment_method,
            donation_date=on_date,
            notes=tuition_memo(enrollment, on_date.month, on_date.year),
        )
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry, None
    except (SQLAlchemyError, LookupError) as exc:
        db.rollback()
        logger.error(
            'revenue_entry_failed enrollment_id=%s amount=%s error=%s',
            enrollment.id,
            amount,
            exc,
        )
        log_reconciliation_issue(
            db,
            org_id=org_id,
            kind=REVENUE_ENTRY_FAILED,
            entity_type='enrollment',
            entity_id=enrollment.id,
            error_message=f'{amount} on {on_date.isoformat()}: {exc}',
            time_provider=time_provider,
        )
        return None, REVENUE_ENTRY_ERROR


@timed_service('apply_payment')
def apply_payment(
    db: Session,
    *,
    org_id: int,
    enrollment_id: int,
    amount,
    payment_date: date | None = None,
    payment_method: str | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> PaymentResult:
    paid = parse_payment_amount(amount)
    method = (payment_method or '').strip() or settings.default_payment_method
    enrollment = get_enrollment(db, org_id=org_id, enrollment_id=enrollment_id)
    on_date = payment_date or time_provider.today()
    if to_money(enrollment.amount_paid) + paid > MAX_MONEY:
        raise PaymentValidationError('Payment would exceed the largest amount an enrollment can hold')

    record = (
        db.query(MonthlyPaymentRecord)
        .filter(
            MonthlyPaymentRecord.enrollment_id == enrollment.id,
            MonthlyPaymentRecord.month == on_date.month,
            MonthlyPaymentRecord.year == on_date.year,
        )
        .first()
    )
    billed_months = (
        db.query(func.count(MonthlyPaymentRecord.id))
        .filter(MonthlyPaymentRecord.enrollment_id == enrollment.id)
        .scalar()
        or 0
    )
    if record is None:
        billed_months += 1

    try:
        _apply_to_enrollment(db, enrollment, paid, billed_months)
        record = _apply_to_month(db, enrollment, record, paid, on_date)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConcurrentPaymentError('Monthly payment was created concurrently; reload and retry') from exc
    except (ConcurrentPaymentError, SQLAlchemyError):
        db.rollback()
        raise

    db.refresh(enrollment)
    db.refresh(record)
    logger.info(
        'payment_applied enrollment_id=%s month=%s year=%s amount=%s status=%s',
        enrollment.id,
        on_date.month,
        on_date.year,
        paid,
        enrollment.payment_status,
    )

    revenue_entry, revenue_error = _record_revenue_entry(
        db,
        org_id=org_id,
        enrollment=enrollment,
        amount=paid,
        on_date=on_date,
        payment_method=method,
        time_provider=time_provider,
    )
    return PaymentResult(
        monthly_record=record,
        enrollment=enrollment,
        revenue_entry=revenue_entry,
        revenue_error=revenue_error,
    )


def payment_history(db: Session, *, org_id: int, enrollment_id: int) -> PaymentHistory:
    enrollment = get_enrollment(db, org_id=org_id, enrollment_id=enrollment_id)
    records = (
        db.query(MonthlyPaymentRecord)
        .filter(MonthlyPaymentRecord.enrollment_id == enrollment.id)
        .order_by(MonthlyPaymentRecord.year.asc(), MonthlyPaymentRecord.month.asc())
        .all()
    )
    return PaymentHistory(
        enrollment=enrollment,
        records=records,
        total_due=sum((to_money(r.amount_due) for r in records), ZERO),
        total_paid=sum((to_money(r.amount_paid) for r in records), ZERO),
    )


def outstanding_payments(
    db: Session,
    *,
    org_id: int,
    time_provider: TimeProvider = default_time_provider,
) -> list[OutstandingMonth]:
    today = time_provider.today()
    current = (today.year, today.month)
    enrollments = db.query(Enrollment).filter(Enrollment.organization_id == int(org_id)).all()
    records = (
        db.query(MonthlyPaymentRecord)
        .filter(MonthlyPaymentRecord.organization_id == int(org_id))
        .all()
    )
    by_enrollment: dict[int, dict[tuple[int, int], MonthlyPaymentRecord]] = {}
    for row in records:
        by_enrollment.setdefault(row.enrollment_id, {})[(row.year, row.month)] = row

    items: list[OutstandingMonth] = []
    for enrollment in enrollments:
        member_name = enrollment.member.full_name if enrollment.member is not None else ''
        class_name = enrollment.scheduled_class.name if enrollment.scheduled_class is not None else ''
        ledger = by_enrollment.get(enrollment.id, {})
        for (year, month), row in ledger.items():
            if (year, month) > current:
                continue
            if to_money(row.amount_paid) >= to_money(row.amount_due):
                continue
            items.append(
                OutstandingMonth(
                    enrollment_id=enrollment.id,
                    member_id=enrollment.member_id,
                    class_id=row.class_id,
                    member_name=member_name,
                    class_name=class_name,
                    month=month,
                    year=year,
                    amount_due=to_money(row.amount_due),
                    amount_paid=to_money(row.amount_paid),
                )
            )

        fee = to_money(enrollment.monthly_fee)
        if fee <= ZERO or enrollment.start_date is None or enrollment.end_date is None:
            continue
        for year, month in iter_months(enrollment.start_date, min(enrollment.end_date, today)):
            if (year, month) in ledger:
                continue
            items.append(
                OutstandingMonth(
                    enrollment_id=enrollment.id,
                    member_id=enrollment.member_id,
                    class_id=enrollment.scheduled_class_id,
                    member_name=member_name,
                    class_name=class_name,
                    month=month,
                    year=year,
                    amount_due=fee,
                    amount_paid=ZERO,
                    recorded=False,
                )
            )

    items.sort(key=lambda item: (item.year, item.month, item.member_name.lower(), item.enrollment_id))
    return items
