from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import func
from sqlalchemy.orm import Session

from mosque_edu.core.money import round_half_up
from mosque_edu.core.time_provider import TimeProvider, default_time_provider
from mosque_edu.models import Enrollment, Evaluation, Member, ScheduledClass


logger = logging.getLogger(__name__)

MIN_SCORE = 0
MAX_SCORE = 100


class EvaluationValidationError(ValueError):
    pass


def _validate_score(score) -> int:
    if isinstance(score, bool):
        raise EvaluationValidationError('Score must be a whole number')
    try:
        value = int(score)
    except (TypeError, ValueError) as exc:
        raise EvaluationValidationError('Score must be a whole number') from exc
    if value != score and str(value) != str(score).strip():
        raise EvaluationValidationError('Score must be a whole number')
    if not MIN_SCORE <= value <= MAX_SCORE:
        raise EvaluationValidationError(f'Score must be between {MIN_SCORE} and {MAX_SCORE}')
    return value


def create_evaluation(
    db: Session,
    *,
    org_id: int,
    member_id: int,
    class_id: int,
    score,
    notes: str | None = None,
    evaluation_date: date | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> Evaluation:
    value = _validate_score(score)
    member = db.query(Member).filter(Member.id == int(member_id), Member.organization_id == int(org_id)).first()
    if not member:
        raise EvaluationValidationError('Member not found')
    scheduled_class = (
        db.query(ScheduledClass)
        .filter(ScheduledClass.id == int(class_id), ScheduledClass.organization_id == int(org_id))
        .first()
    )
    if not scheduled_class:
        raise EvaluationValidationError('Class not found')
    enrollment = (
        db.query(Enrollment.id)
        .filter(
            Enrollment.organization_id == int(org_id),
            Enrollment.member_id == member.id,
            Enrollment.scheduled_class_id == scheduled_class.id,
        )
        .first()
    )

    row = Evaluation(
        organization_id=int(org_id),
        enrollment_id=enrollment[0] if enrollment else None,
        member_id=member.id,
        scheduled_class_id=scheduled_class.id,
        score=value,
        notes=notes,
        evaluation_date=evaluation_date or time_provider.today(),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info('evaluation_recorded member_id=%s class_id=%s score=%s', member.id, scheduled_class.id, value)
    return row


def list_evaluations(
    db: Session,
    *,
    org_id: int,
    class_id: int | None = None,
    member_id: int | None = None,
) -> list[Evaluation]:
    query = db.query(Evaluation).filter(Evaluation.organization_id == int(org_id))
    if class_id is not None:
        query = query.filter(Evaluation.scheduled_class_id == int(class_id))
    if member_id is not None:
        query = query.filter(Evaluation.member_id == int(member_id))
    return query.order_by(Evaluation.evaluation_date.desc(), Evaluation.id.desc()).all()


def evaluation_summary(
    db: Session,
    *,
    org_id: int,
    member_id: int,
    class_id: int | None = None,
) -> dict:
    query = db.query(
        func.count(Evaluation.id),
        func.avg(Evaluation.score),
        func.max(Evaluation.score),
        func.min(Evaluation.score),
        func.max(Evaluation.evaluation_date),
    ).filter(Evaluation.organization_id == int(org_id), Evaluation.member_id == int(member_id))
    if class_id is not None:
        query = query.filter(Evaluation.scheduled_class_id == int(class_id))
    count, average, highest, lowest, latest = query.one()
    return {
        'count': int(count or 0),
        'average_score': round_half_up(average, 1) if count else 0.0,
        'highest': int(highest) if highest is not None else None,
        'lowest': int(lowest) if lowest is not None else None,
        'latest_date': latest,
    }
