from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from datetime import datetime
from enum import Enum


class EstimateStatus(str, Enum):
    """Commercial lifecycle of an estimate."""
    DRAFT = "Draft"
    WORK_ORDER = "Work Order"
    INVOICED = "Invoiced"
    PAID = "Paid"
    ARCHIVED = "Archived"


class ExecutionStatus(str, Enum):
    """Field-work lifecycle, tracked by the crew."""
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class InventoryLine(BaseModel):
    """Named material line on an estimate (tape, plastic, ...)."""
    id: Optional[str] = None
    name: str
    quantity: float = 0.0
    unit: str = "Units"
    unit_cost: Optional[float] = None


class Reservation(BaseModel):
    """Quantities actually withdrawn from the warehouse for a job."""
    open_cell_sets: float = 0.0
    closed_cell_sets: float = 0.0
    inventory: List[InventoryLine] = Field(default_factory=list)


class Materials(Reservation):
    """Required materials computed at save time, plus the reserved baseline."""
    reserved: Optional[Reservation] = None


class Actuals(BaseModel):
    """Crew-reported usage, written once on completion."""
    open_cell_sets: float = 0.0
    closed_cell_sets: float = 0.0
    open_cell_strokes: Optional[float] = None
    closed_cell_strokes: Optional[float] = None
    inventory: List[InventoryLine] = Field(default_factory=list)
    completion_date: Optional[datetime] = None
    completed_by: Optional[str] = None
    labor_hours: Optional[float] = None
    notes: Optional[str] = None


class OtherExpense(BaseModel):
    description: str = ""
    amount: float = 0.0


class Expenses(BaseModel):
    man_hours: float = 0.0
    labor_rate: Optional[float] = None  # per-job override of the company rate
    trip_charge: float = 0.0
    fuel_surcharge: float = 0.0
    other: OtherExpense = Field(default_factory=OtherExpense)


class FinancialSnapshot(BaseModel):
    revenue: float = 0.0
    chemical_cost: float = 0.0
    labor_cost: float = 0.0
    inventory_cost: float = 0.0
    misc_cost: float = 0.0
    total_cogs: float = 0.0
    net_profit: float = 0.0
    margin: float = 0.0


class CustomerSnapshot(BaseModel):
    """Customer details copied onto the estimate at save time."""
    id: Optional[str] = None
    name: str = ""
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        extra = "allow"


class EstimateSave(BaseModel):
    """
    Payload for creating or editing an estimate.

    `results` is the output of the calculation engine; required foam sets are
    read from results["open_cell_sets"] / results["closed_cell_sets"] and the
    price from results["total_cost"] unless total_value is given.
    """
    id: Optional[str] = None
    customer: CustomerSnapshot
    inputs: Dict[str, Any] = Field(default_factory=dict)
    results: Dict[str, Any] = Field(default_factory=dict)
    inventory: List[InventoryLine] = Field(default_factory=list)
    total_value: Optional[float] = None
    wall_settings: Dict[str, Any] = Field(default_factory=dict)
    roof_settings: Dict[str, Any] = Field(default_factory=dict)
    expenses: Expenses = Field(default_factory=Expenses)
    notes: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    invoice_date: Optional[datetime] = None
    invoice_number: Optional[str] = None
    payment_terms: Optional[str] = None
    assigned_crew_id: Optional[str] = None
    pricing_mode: Optional[str] = None
    sqft_rates: Optional[Dict[str, float]] = None


class EstimateRecord(BaseModel):
    """Full estimate as stored, listed and synced."""
    id: str
    customer_id: Optional[str] = None
    status: EstimateStatus = EstimateStatus.DRAFT
    execution_status: ExecutionStatus = ExecutionStatus.NOT_STARTED
    total_value: float = 0.0
    invoice_number: Optional[str] = None
    date: Optional[datetime] = None
    scheduled_date: Optional[datetime] = None
    invoice_date: Optional[datetime] = None
    payment_terms: Optional[str] = "Due on Receipt"
    assigned_crew_id: Optional[str] = None
    notes: Optional[str] = None
    customer_snapshot: CustomerSnapshot = Field(default_factory=CustomerSnapshot)
    inputs: Dict[str, Any] = Field(default_factory=dict)
    results: Dict[str, Any] = Field(default_factory=dict)
    materials: Materials = Field(default_factory=Materials)
    wall_settings: Dict[str, Any] = Field(default_factory=dict)
    roof_settings: Dict[str, Any] = Field(default_factory=dict)
    expenses: Expenses = Field(default_factory=Expenses)
    actuals: Optional[Actuals] = None
    financials: Optional[FinancialSnapshot] = None
    pricing_mode: Optional[str] = None
    sqft_rates: Optional[Dict[str, float]] = None
    pdf_url: Optional[str] = None
    work_order_url: Optional[str] = None

    class Config:
        from_attributes = True


class EstimateResponse(EstimateRecord):
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class WorkOrderConfirm(BaseModel):
    """
    Confirm an estimate as a work order.

    allow_shortage is the user's answer to the shortage warning; without it a
    shortage returns 409 and nothing changes. `estimate` optionally carries
    unsaved edits that are saved as part of the confirmation.
    """
    allow_shortage: bool = False
    estimate: Optional[EstimateSave] = None


class JobCompletion(BaseModel):
    actuals: Actuals


class InvoiceRequest(BaseModel):
    apply_crew_actuals: bool = False
    invoice_date: Optional[datetime] = None
    payment_terms: Optional[str] = None


class DocumentLinks(BaseModel):
    pdf_url: Optional[str] = None
    work_order_url: Optional[str] = None
