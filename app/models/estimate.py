from sqlalchemy import Column, String, Float, DateTime, JSON, ForeignKey, Index
from datetime import datetime
from app.database import Base


class Estimate(Base):
    """
    A quote for a job, and everything that happens to it afterwards.

    Two independent status axes ride on the row:
    - status: Draft -> Work Order -> Invoiced -> Paid (or Archived)
    - execution_status: Not Started -> In Progress -> Completed (crew side)

    materials holds the required quantities computed at save time. Once stock
    has been deducted for the job, materials["reserved"] records exactly what
    was taken from the warehouse; it is the baseline for later adjustments,
    release on delete and reconciliation against crew actuals.

    actuals (crew) and financials (payment) are written once.
    """
    __tablename__ = "estimates"

    id = Column(String, primary_key=True, index=True)  # UUIDv7, generated client side
    company_id = Column(String, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = Column(String, nullable=True, index=True)

    # Queryable summary columns
    status = Column(String, nullable=False, default="Draft")
    execution_status = Column(String, nullable=False, default="Not Started")
    total_value = Column(Float, nullable=False, default=0.0)
    invoice_number = Column(String, nullable=True)
    date = Column(DateTime, default=datetime.utcnow, nullable=False)
    scheduled_date = Column(DateTime, nullable=True)
    invoice_date = Column(DateTime, nullable=True)
    payment_terms = Column(String, nullable=True, default="Due on Receipt")
    assigned_crew_id = Column(String, nullable=True, index=True)
    notes = Column(String, nullable=True)

    # Full data blobs (read/written as a unit)
    customer_snapshot = Column(JSON, nullable=False, default=dict)
    inputs = Column(JSON, nullable=False, default=dict)
    results = Column(JSON, nullable=False, default=dict)
    materials = Column(JSON, nullable=False, default=dict)
    wall_settings = Column(JSON, nullable=False, default=dict)
    roof_settings = Column(JSON, nullable=False, default=dict)
    expenses = Column(JSON, nullable=False, default=dict)
    actuals = Column(JSON, nullable=True)
    financials = Column(JSON, nullable=True)

    # Pricing snapshot
    pricing_mode = Column(String, nullable=True)
    sqft_rates = Column(JSON, nullable=True)

    # Document links written back by the document generator
    pdf_url = Column(String, nullable=True)
    work_order_url = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_estimate_company_status', 'company_id', 'status'),
        Index('idx_estimate_company_crew', 'company_id', 'assigned_crew_id'),
    )
