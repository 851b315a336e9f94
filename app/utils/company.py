"""
Tenant (company) lookups, defaults and the per-tenant invoice sequence.
"""
import logging
from typing import Optional
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import TenantNotFound
from app.models.company import Company
from app.schemas.estimate import Expenses

logger = logging.getLogger(__name__)

DEFAULT_COSTS = {"open_cell": 2000.0, "closed_cell": 2600.0, "labor_rate": 85.0}
DEFAULT_YIELDS = {"open_cell": 16000.0, "closed_cell": 4000.0, "open_cell_strokes": 6600.0, "closed_cell_strokes": 6600.0}
DEFAULT_SQFT_RATES = {"wall": 0.0, "roof": 0.0}


def get_company(db: Session, company_id: str) -> Company:
    company = db.query(Company).filter(Company.id == company_id).first()
    if not company:
        raise TenantNotFound(company_id)
    return company


def lock_company(db: Session, company_id: str) -> Company:
    """
    Load the company row with a row lock held until commit.

    Every warehouse writer goes through here first.
    """
    company = (
        db.query(Company)
        .filter(Company.id == company_id)
        .with_for_update()
        .first()
    )
    if not company:
        raise TenantNotFound(company_id)
    return company


def get_or_create_company(
    db: Session,
    company_id: str,
    name: Optional[str] = None,
    open_cell_sets: float = 0.0,
    closed_cell_sets: float = 0.0,
) -> Company:
    company = db.query(Company).filter(Company.id == company_id).first()
    if company:
        return company

    company = Company(
        id=company_id,
        name=name or company_id,
        profile={"company_name": name or company_id},
        costs=dict(DEFAULT_COSTS),
        yields=dict(DEFAULT_YIELDS),
        expenses=Expenses().model_dump(),
        pricing_mode="level_pricing",
        sqft_rates=dict(DEFAULT_SQFT_RATES),
        open_cell_sets=open_cell_sets,
        closed_cell_sets=closed_cell_sets,
        next_invoice_number=1,
    )
    db.add(company)
    db.flush()
    logger.info("Created company %s", company_id)
    return company


def allocate_invoice_number(db: Session, company_id: str) -> str:
    """Next number from the tenant's sequence, e.g. INV-00001. Never reused."""
    company = lock_company(db, company_id)
    current = company.next_invoice_number or 1
    company.next_invoice_number = current + 1
    db.flush()
    return f"{settings.invoice_prefix}{str(current).zfill(settings.invoice_min_width)}"
