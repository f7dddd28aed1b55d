from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mosque_edu.core.time_provider import TimeProvider, default_time_provider
from mosque_edu.models import ReconciliationIssue


logger = logging.getLogger(__name__)

REVENUE_ENTRY_FAILED = 'revenue_entry_failed'


def log_reconciliation_issue(
    db: Session,
    *,
    org_id: int,
    kind: str,
    entity_type: str,
    entity_id: int | None,
    error_message: str,
    time_provider: TimeProvider = default_time_provider,
) -> ReconciliationIssue | None:
    row = ReconciliationIssue(
        organization_id=int(org_id),
        kind=str(kind or 'unknown'),
        entity_type=str(entity_type or ''),
        entity_id=int(entity_id) if entity_id is not None else None,
        error_message=str(error_message or ''),
        created_at=time_provider.utcnow_naive(),
    )
    try:
        db.add(row)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error(
            'reconciliation_issue_write_failed',
            extra={'org_id': org_id, 'kind': kind, 'entity_type': entity_type, 'entity_id': entity_id},
        )
        return None
    return row


def list_open_issues(db: Session, *, org_id: int, kind: str | None = None) -> list[ReconciliationIssue]:
    query = db.query(ReconciliationIssue).filter(ReconciliationIssue.organization_id == int(org_id))
    if kind:
        query = query.filter(ReconciliationIssue.kind == kind)
    return query.order_by(ReconciliationIssue.created_at.desc(), ReconciliationIssue.id.desc()).all()
