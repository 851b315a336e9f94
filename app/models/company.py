from sqlalchemy import Column, Integer, String, Float, DateTime, JSON
from datetime import datetime
from app.database import Base


class Company(Base):
    """
    Tenant row - one per contractor business.

    Also carries the warehouse foam counters (open/closed cell sets). Writers
    lock this row first (see app.utils.company.lock_company).

    Counters are signed: a negative value is a committed shortage.
    """
    __tablename__ = "companies"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)

    # Branding / settings read and written as a unit
    profile = Column(JSON, nullable=False, default=dict)
    costs = Column(JSON, nullable=False, default=dict)      # {"open_cell", "closed_cell", "labor_rate"}
    yields = Column(JSON, nullable=False, default=dict)     # {"open_cell", "closed_cell", ...strokes}
    expenses = Column(JSON, nullable=False, default=dict)   # default expenses for new estimates
    pricing_mode = Column(String, nullable=False, default="level_pricing")
    sqft_rates = Column(JSON, nullable=False, default=dict)

    # Warehouse foam stock (2-decimal fixed point)
    open_cell_sets = Column(Float, nullable=False, default=0.0)
    closed_cell_sets = Column(Float, nullable=False, default=0.0)

    # Per-tenant invoice sequence
    next_invoice_number = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
