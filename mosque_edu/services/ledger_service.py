from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mosque_edu.config import settings
from mosque_edu.core.calendar_months import add_months, first_of_month, iter_months
from mosque_edu.core.money import ZERO, to_money
from mosque_edu.core.time_provider import TimeProvider, default_time_provider
from mosque_edu.models import Enrollment, MonthlyPaymentRecord, MonthlyPaymentStatus


logger = logging.getLogger(__name__)


@dataclass
class LedgerResult:
    records: list[MonthlyPaymentRecord] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _has_usable_range(start_date: date | None, end_date: date | None) -> bool:
    return start_date is not None and end_date is not None and first_of_month(start_date) <= end_date


def billing_months(
    monthly_fee,
    start_date: date | None = None,
    end_date: date | None = None,
    *,
    today: date,
) -> list[tuple[int, int]]:
    """(year, month) pairs an enrollment is billed for; empty when there is no fee."""
    if to_money(monthly_fee) <= ZERO:
        return []
    if _has_usable_range(start_date, end_date):
        return list(iter_months(start_date, end_date))
    return [add_months(today.year, today.month, offset) for offset in range(settings.default_ledger_months)]


def generate_ledger(
    enrollment: Enrollment,
    monthly_fee,
    start_date: date | None = None,
    end_date: date | None = None,
    *,
    today: date,
) -> list[MonthlyPaymentRecord]:
    fee = to_money(monthly_fee)
    return [
        MonthlyPaymentRecord(
            organization_id=enrollment.organization_id,
            enrollment_id=enrollment.id,
            class_id=enrollment.scheduled_class_id,
            member_id=enrollment.member_id,
            month=month,
            year=year,
            amount_due=fee,
            amount_paid=Decimal('0.00'),
            payment_status=MonthlyPaymentStatus.UNPAID.value,
            payment_date=None,
        )
        for year, month in billing_months(fee, start_date, end_date, today=today)
    ]


def materialize_ledger(
    db: Session,
    enrollment: Enrollment,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> LedgerResult:
    """Insert the generated ledger for a committed enrollment.

    Best effort: a failed insert is rolled back and reported on the result,
    never raised, so the enrollment itself stays in place.
    """
    records = generate_ledger(
        enrollment,
        enrollment.monthly_fee,
        enrollment.start_date,
        enrollment.end_date,
        today=time_provider.today(),
    )
    if not records:
        return LedgerResult()

    try:
        db.add_all(records)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning(
            'ledger_generation_failed enrollment_id=%s months=%s error=%s',
            enrollment.id,
            len(records),
            exc,
        )
        return LedgerResult(error='Enrolled, but billing records could not be created')

    logger.info('ledger_generated enrollment_id=%s months=%s', enrollment.id, len(records))
    return LedgerResult(records=records)
