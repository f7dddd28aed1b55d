from __future__ import annotations

from typing import NoReturn

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from mosque_edu.db import get_db
from mosque_edu.models import Organization
from mosque_edu.services.attendance_service import AttendanceConflictError
from mosque_edu.services.enrollment_service import EnrollmentRejectedError, StaleEnrollmentError


def require_organization(org_id: int, db: Session = Depends(get_db)) -> int:
    if not db.query(Organization.id).filter(Organization.id == int(org_id)).first():
        raise HTTPException(status_code=404, detail='Organization not found')
    return int(org_id)


def raise_http_error(exc: Exception) -> NoReturn:
    """Translate a service exception into the matching HTTP error."""
    if isinstance(exc, (EnrollmentRejectedError, AttendanceConflictError, StaleEnrollmentError)):
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    if isinstance(exc, LookupError):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if isinstance(exc, ValueError):
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    raise exc
