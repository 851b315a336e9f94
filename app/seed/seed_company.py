"""
Seed a demo tenant: company row with default costs, foam stock and a few
warehouse items.
"""
import logging
from typing import Optional
from sqlalchemy.orm import Session

from app.database import SessionLocal
from app.models.warehouse import WarehouseItem
from app.utils.company import get_or_create_company
from app.utils.ids import new_id

logger = logging.getLogger(__name__)

DEMO_ITEMS = [
    {"name": "Tape", "quantity": 24, "unit": "Rolls", "unit_cost": 6.5, "min_level": 6},
    {"name": "Poly Sheeting", "quantity": 10, "unit": "Rolls", "unit_cost": 42.0, "min_level": 2},
    {"name": "Gun Cleaner", "quantity": 4, "unit": "Gallons", "unit_cost": 28.0, "min_level": 1},
]


def seed_company(
    db: Optional[Session] = None,
    company_id: str = "demo",
    name: str = "Demo Spray Foam Co",
    open_cell_sets: float = 10.0,
    closed_cell_sets: float = 6.0,
):
    own_session = db is None
    db = db or SessionLocal()
    try:
        company = get_or_create_company(db, company_id, name, open_cell_sets, closed_cell_sets)
        existing = {
            item.name for item in db.query(WarehouseItem).filter(WarehouseItem.company_id == company.id)
        }
        for item in DEMO_ITEMS:
            if item["name"] in existing:
                continue
            db.add(WarehouseItem(id=new_id(), company_id=company.id, **item))
        db.commit()
        logger.info("Seeded company %s", company.id)
        return company
    except Exception:
        db.rollback()
        raise
    finally:
        if own_session:
            db.close()
