from sqlalchemy import Column, String, Float, DateTime, ForeignKey, Index
from datetime import datetime
from app.database import Base


class WarehouseItem(Base):
    """Named stock item (tape, plastic, ...) in a tenant's warehouse."""
    __tablename__ = "warehouse_items"

    id = Column(String, primary_key=True, index=True)
    company_id = Column(String, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    quantity = Column(Float, nullable=False, default=0.0)
    unit = Column(String, nullable=False, default="Units")
    unit_cost = Column(Float, nullable=False, default=0.0)
    min_level = Column(Float, nullable=False, default=0.0)  # reorder threshold

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_warehouse_item_company_name', 'company_id', 'name'),
    )
