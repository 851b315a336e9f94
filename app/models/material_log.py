from sqlalchemy import Column, String, Float, DateTime, ForeignKey
from datetime import datetime
from app.database import Base


class MaterialLog(Base):
    """Append-only material usage ledger. Rows are never updated or deleted."""
    __tablename__ = "material_logs"

    id = Column(String, primary_key=True, index=True)
    company_id = Column(String, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    # Plain column: the log outlives a hard-deleted estimate
    estimate_id = Column(String, nullable=True, index=True)
    customer_name = Column(String, nullable=True)
    material_name = Column(String, nullable=False)
    quantity = Column(Float, nullable=False)
    unit = Column(String, nullable=False, default="Units")
    logged_by = Column(String, nullable=True)
    logged_at = Column(DateTime, default=datetime.utcnow, nullable=False)
