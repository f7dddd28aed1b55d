from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mosque_edu.core.router_guard import raise_http_error, require_organization
from mosque_edu.db import get_db
from mosque_edu.route_logging import EndpointNameRoute
from mosque_edu.schemas import EnrollmentOut, EnrollRequest, MonthlyPaymentOut, MoveStudentsRequest, TransferRequest
from mosque_edu.services.enrollment_service import (
    complete_enrollment,
    enroll,
    list_enrollments,
    move_students,
    transfer_enrollment,
    withdraw,
)


router = APIRouter(prefix='/orgs/{org_id}', tags=['Enrollments'], route_class=EndpointNameRoute)


@router.get('/enrollments')
def enrollment_list(
    class_id: int | None = None,
    member_id: int | None = None,
    org_id: int = Depends(require_organization),
    db: Session = Depends(get_db),
):
    rows = list_enrollments(db, org_id=org_id, class_id=class_id, member_id=member_id)
    return [EnrollmentOut.model_validate(row) for row in rows]


@router.post('/enrollments', status_code=201)
def enrollment_create(
    payload: EnrollRequest,
    org_id: int = Depends(require_organization),
    db: Session = Depends(get_db),
):
    try:
        result = enroll(
            db,
            org_id=org_id,
            member_id=payload.member_id,
            class_id=payload.class_id,
            monthly_fee=payload.monthly_fee,
            start_date=payload.start_date,
            end_date=payload.end_date,
        )
    except (ValueError, LookupError) as exc:
        raise_http_error(exc)
    return {
        'enrollment': EnrollmentOut.model_validate(result.enrollment),
        'ledger': [MonthlyPaymentOut.model_validate(row) for row in result.ledger_records],
        'billing_error': result.billing_error,
    }


@router.post('/enrollments/{enrollment_id}/transfer')
def enrollment_transfer(
    enrollment_id: int,
    payload: TransferRequest,
    org_id: int = Depends(require_organization),
    db: Session = Depends(get_db),
):
    try:
        row = transfer_enrollment(db, org_id=org_id, enrollment_id=enrollment_id, new_class_id=payload.class_id)
    except (ValueError, LookupError, RuntimeError) as exc:
        raise_http_error(exc)
    return EnrollmentOut.model_validate(row)


@router.post('/enrollments/{enrollment_id}/complete')
def enrollment_complete(
    enrollment_id: int,
    org_id: int = Depends(require_organization),
    db: Session = Depends(get_db),
):
    try:
        row = complete_enrollment(db, org_id=org_id, enrollment_id=enrollment_id)
    except (LookupError, RuntimeError) as exc:
        raise_http_error(exc)
    return EnrollmentOut.model_validate(row)


@router.delete('/enrollments/{enrollment_id}', status_code=204)
def enrollment_withdraw(
    enrollment_id: int,
    org_id: int = Depends(require_organization),
    db: Session = Depends(get_db),
):
    try:
        withdraw(db, org_id=org_id, enrollment_id=enrollment_id)
    except LookupError as exc:
        raise_http_error(exc)


@router.post('/classrooms/{source_classroom_id}/move-students')
def classroom_move_students(
    source_classroom_id: int,
    payload: MoveStudentsRequest,
    org_id: int = Depends(require_organization),
    db: Session = Depends(get_db),
):
    try:
        result = move_students(
            db,
            org_id=org_id,
            member_ids=payload.member_ids,
            source_classroom_id=source_classroom_id,
            target_classroom_id=payload.target_classroom_id,
        )
    except (ValueError, LookupError, RuntimeError) as exc:
        raise_http_error(exc)
    return {
        'target_class_id': result.target_class_id,
        'transferred_enrollment_ids': result.transferred_enrollment_ids,
        'created_enrollment_ids': result.created_enrollment_ids,
        'removed_enrollment_ids': result.removed_enrollment_ids,
    }
