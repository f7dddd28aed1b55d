from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mosque_edu.config import settings
from mosque_edu.models import Fund, Organization


logger = logging.getLogger(__name__)


class OrganizationNotFoundError(LookupError):
    pass


def _find_fund(db: Session, org_id: int, name: str) -> Fund | None:
    return (
        db.query(Fund)
        .filter(Fund.organization_id == int(org_id), func.lower(Fund.name) == name.strip().lower())
        .order_by(Fund.id.asc())
        .first()
    )


def get_or_create_fund(db: Session, *, org_id: int, name: str) -> Fund:
    """Idempotent lookup-or-create, guarded by the (organization, name) unique key."""
    fund = _find_fund(db, org_id, name)
    if fund:
        return fund
    fund = Fund(organization_id=int(org_id), name=name.strip())
    try:
        db.add(fund)
        db.commit()
    except IntegrityError:
        # Another writer provisioned it first.
        db.rollback()
        fund = _find_fund(db, org_id, name)
        if fund is None:
            raise
        return fund
    db.refresh(fund)
    logger.info('fund_created org_id=%s fund_id=%s name=%s', org_id, fund.id, fund.name)
    return fund


def provision_education_fund(db: Session, *, org_id: int) -> Fund:
    """One-time organization setup step; later payments reference the stored fund id."""
    org = db.query(Organization).filter(Organization.id == int(org_id)).first()
    if not org:
        raise OrganizationNotFoundError('Organization not found')
    if org.education_fund_id:
        fund = db.query(Fund).filter(Fund.id == org.education_fund_id, Fund.organization_id == org.id).first()
        if fund:
            return fund
    fund = get_or_create_fund(db, org_id=org.id, name=settings.education_fund_name)
    org.education_fund_id = fund.id
    db.commit()
    return fund


def education_fund_id(db: Session, *, org_id: int) -> int:
    org = db.query(Organization).filter(Organization.id == int(org_id)).first()
    if org and org.education_fund_id:
        return int(org.education_fund_id)
    logger.warning('education_fund_not_provisioned org_id=%s', org_id)
    return int(provision_education_fund(db, org_id=org_id).id)
