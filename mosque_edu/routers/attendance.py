from datetime import date

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from mosque_edu.cache import bypass_cache, cache, cache_key, org_cache_prefix
from mosque_edu.config import settings
from mosque_edu.core.router_guard import raise_http_error, require_organization
from mosque_edu.db import get_db
from mosque_edu.route_logging import EndpointNameRoute
from mosque_edu.schemas import AttendanceBulkRequest, AttendanceCreateRequest, AttendanceOut, AttendanceUpdateRequest
from mosque_edu.services.attendance_service import (
    bulk_upsert_attendance,
    create_attendance,
    delete_attendance,
    list_attendance,
    update_attendance,
)
from mosque_edu.services.attendance_summary_service import class_summary, student_summary


router = APIRouter(prefix='/orgs/{org_id}/attendance', tags=['Attendance'], route_class=EndpointNameRoute)


def _summary_prefix(org_id: int) -> str:
    return f"{org_cache_prefix('attendance_summary', org_id)}:"


def _invalidate_summaries(org_id: int) -> None:
    cache.invalidate_prefix(_summary_prefix(org_id))


@router.get('')
def attendance_list(
    class_id: int | None = None,
    member_id: int | None = None,
    status: list[str] | None = Query(default=None),
    date_from: date | None = None,
    date_to: date | None = None,
    org_id: int = Depends(require_organization),
    db: Session = Depends(get_db),
):
    try:
        rows = list_attendance(
            db,
            org_id=org_id,
            class_id=class_id,
            member_id=member_id,
            status=status,
            date_from=date_from,
            date_to=date_to,
        )
    except ValueError as exc:
        raise_http_error(exc)
    return [AttendanceOut.model_validate(row) for row in rows]


@router.post('', status_code=201)
def attendance_create(
    payload: AttendanceCreateRequest,
    org_id: int = Depends(require_organization),
    db: Session = Depends(get_db),
):
    try:
        row = create_attendance(
            db,
            org_id=org_id,
            class_id=payload.class_id,
            member_id=payload.member_id,
            attendance_date=payload.attendance_date,
            status=payload.status,
            notes=payload.notes,
            check_in_time=payload.check_in_time,
            check_out_time=payload.check_out_time,
        )
    except ValueError as exc:
        raise_http_error(exc)
    _invalidate_summaries(org_id)
    return AttendanceOut.model_validate(row)


@router.put('/bulk')
def attendance_bulk_upsert(
    payload: AttendanceBulkRequest,
    org_id: int = Depends(require_organization),
    db: Session = Depends(get_db),
):
    try:
        rows = bulk_upsert_attendance(
            db,
            org_id=org_id,
            class_id=payload.class_id,
            attendance_date=payload.attendance_date,
            records=[item.model_dump() for item in payload.records],
        )
    except ValueError as exc:
        raise_http_error(exc)
    _invalidate_summaries(org_id)
    return [AttendanceOut.model_validate(row) for row in rows]


@router.patch('/{attendance_id}')
def attendance_update(
    attendance_id: int,
    payload: AttendanceUpdateRequest,
    org_id: int = Depends(require_organization),
    db: Session = Depends(get_db),
):
    try:
        row = update_attendance(db, org_id=org_id, attendance_id=attendance_id, status=payload.status, notes=payload.notes)
    except (ValueError, LookupError) as exc:
        raise_http_error(exc)
    _invalidate_summaries(org_id)
    return AttendanceOut.model_validate(row)


@router.delete('/{attendance_id}', status_code=204)
def attendance_delete(
    attendance_id: int,
    org_id: int = Depends(require_organization),
    db: Session = Depends(get_db),
):
    try:
        delete_attendance(db, org_id=org_id, attendance_id=attendance_id)
    except LookupError as exc:
        raise_http_error(exc)
    _invalidate_summaries(org_id)


@router.get('/classes/{class_id}/summary')
def attendance_class_summary(
    request: Request,
    class_id: int,
    date_from: date | None = None,
    date_to: date | None = None,
    org_id: int = Depends(require_organization),
    db: Session = Depends(get_db),
):
    key = cache_key(f'{_summary_prefix(org_id)}class', f'{class_id}:{date_from}:{date_to}')
    if not bypass_cache(request):
        cached = cache.get_cached(key)
        if cached is not None:
            return cached
    payload = class_summary(db, org_id=org_id, class_id=class_id, date_from=date_from, date_to=date_to)
    cache.set_cached(key, payload, ttl=settings.attendance_summary_cache_ttl)
    return payload


@router.get('/members/{member_id}/summary')
def attendance_member_summary(
    request: Request,
    member_id: int,
    class_id: int | None = None,
    org_id: int = Depends(require_organization),
    db: Session = Depends(get_db),
):
    key = cache_key(f'{_summary_prefix(org_id)}member', f'{member_id}:{class_id}')
    if not bypass_cache(request):
        cached = cache.get_cached(key)
        if cached is not None:
            return cached
    payload = student_summary(db, org_id=org_id, member_id=member_id, class_id=class_id)
    cache.set_cached(key, payload, ttl=settings.attendance_summary_cache_ttl)
    return payload
