from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mosque_edu.core.router_guard import raise_http_error, require_organization
from mosque_edu.db import get_db
from mosque_edu.route_logging import EndpointNameRoute
from mosque_edu.schemas import EvaluationCreateRequest, EvaluationOut
from mosque_edu.services.evaluation_service import create_evaluation, evaluation_summary, list_evaluations


router = APIRouter(prefix='/orgs/{org_id}/evaluations', tags=['Evaluations'], route_class=EndpointNameRoute)


@router.post('', status_code=201)
def evaluation_create(
    payload: EvaluationCreateRequest,
    org_id: int = Depends(require_organization),
    db: Session = Depends(get_db),
):
    try:
        row = create_evaluation(
            db,
            org_id=org_id,
            member_id=payload.member_id,
            class_id=payload.class_id,
            score=payload.score,
            notes=payload.notes,
            evaluation_date=payload.evaluation_date,
        )
    except ValueError as exc:
        raise_http_error(exc)
    return EvaluationOut.model_validate(row)


@router.get('')
def evaluation_list(
    class_id: int | None = None,
    member_id: int | None = None,
    org_id: int = Depends(require_organization),
    db: Session = Depends(get_db),
):
    rows = list_evaluations(db, org_id=org_id, class_id=class_id, member_id=member_id)
    return [EvaluationOut.model_validate(row) for row in rows]


@router.get('/members/{member_id}/summary')
def evaluation_member_summary(
    member_id: int,
    class_id: int | None = None,
    org_id: int = Depends(require_organization),
    db: Session = Depends(get_db),
):
    return evaluation_summary(db, org_id=org_id, member_id=member_id, class_id=class_id)
