from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mosque_edu.core.router_guard import raise_http_error, require_organization
from mosque_edu.db import get_db
from mosque_edu.route_logging import EndpointNameRoute
from mosque_edu.schemas import EnrollmentOut, MonthlyPaymentOut, PaymentRequest
from mosque_edu.services.payment_service import apply_payment, outstanding_payments, payment_history


router = APIRouter(prefix='/orgs/{org_id}', tags=['Payments'], route_class=EndpointNameRoute)


@router.post('/enrollments/{enrollment_id}/payments', status_code=201)
def payment_create(
    enrollment_id: int,
    payload: PaymentRequest,
    org_id: int = Depends(require_organization),
    db: Session = Depends(get_db),
):
    try:
        result = apply_payment(
            db,
            org_id=org_id,
            enrollment_id=enrollment_id,
            amount=payload.amount,
            payment_date=payload.payment_date,
            payment_method=payload.payment_method,
        )
    except (ValueError, LookupError, RuntimeError) as exc:
        raise_http_error(exc)
    return {
        'monthly_record': MonthlyPaymentOut.model_validate(result.monthly_record),
        'enrollment': EnrollmentOut.model_validate(result.enrollment),
        'revenue_entry_id': result.revenue_entry.id if result.revenue_entry else None,
        'revenue_error': result.revenue_error,
    }


@router.get('/enrollments/{enrollment_id}/payments')
def payment_list(
    enrollment_id: int,
    org_id: int = Depends(require_organization),
    db: Session = Depends(get_db),
):
    try:
        history = payment_history(db, org_id=org_id, enrollment_id=enrollment_id)
    except LookupError as exc:
        raise_http_error(exc)
    return {
        'enrollment_id': history.enrollment.id,
        'records': [MonthlyPaymentOut.model_validate(row) for row in history.records],
        'total_due': str(history.total_due),
        'total_paid': str(history.total_paid),
        'total_outstanding': str(history.total_outstanding),
    }


@router.get('/payments/outstanding')
def payment_outstanding(org_id: int = Depends(require_organization), db: Session = Depends(get_db)):
    return [
        {
            'enrollment_id': item.enrollment_id,
            'member_id': item.member_id,
            'member_name': item.member_name,
            'class_id': item.class_id,
            'class_name': item.class_name,
            'month': item.month,
            'year': item.year,
            'amount_due': str(item.amount_due),
            'amount_paid': str(item.amount_paid),
            'outstanding': str(item.outstanding),
            'due_date': item.due_date.isoformat(),
            'recorded': item.recorded,
        }
        for item in outstanding_payments(db, org_id=org_id)
    ]
