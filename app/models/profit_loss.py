from sqlalchemy import Column, String, Float, DateTime, ForeignKey
from datetime import datetime
from app.database import Base


class ProfitLoss(Base):
    """
    Financial snapshot taken when an estimate is marked Paid.

    Inserted once per estimate and never recomputed, even if cost settings
    change later.
    """
    __tablename__ = "profit_loss"

    id = Column(String, primary_key=True, index=True)
    company_id = Column(String, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    estimate_id = Column(String, nullable=True, index=True)
    customer_name = Column(String, nullable=True)
    invoice_number = Column(String, nullable=True)
    date_paid = Column(DateTime, default=datetime.utcnow, nullable=False)

    revenue = Column(Float, nullable=False, default=0.0)
    chem_cost = Column(Float, nullable=False, default=0.0)
    labor_cost = Column(Float, nullable=False, default=0.0)
    inventory_cost = Column(Float, nullable=False, default=0.0)
    misc_cost = Column(Float, nullable=False, default=0.0)
    total_cogs = Column(Float, nullable=False, default=0.0)
    net_profit = Column(Float, nullable=False, default=0.0)
    margin = Column(Float, nullable=False, default=0.0)
