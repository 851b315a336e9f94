from sqlalchemy import Column, String, Float, DateTime, JSON, ForeignKey
from datetime import datetime
from app.database import Base


class PurchaseOrder(Base):
    """
    Stock replenishment event. Applied to the warehouse when saved and never
    reversed or edited afterwards.

    items: [{"description", "quantity", "unit_cost", "total",
             "type": "open_cell" | "closed_cell" | "inventory",
             "inventory_id": optional warehouse item id}]
    """
    __tablename__ = "purchase_orders"

    id = Column(String, primary_key=True, index=True)
    company_id = Column(String, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(DateTime, default=datetime.utcnow, nullable=False)
    vendor_name = Column(String, nullable=False, default="")
    status = Column(String, nullable=False, default="Received")
    items = Column(JSON, nullable=False, default=list)
    total_cost = Column(Float, nullable=False, default=0.0)
    notes = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
