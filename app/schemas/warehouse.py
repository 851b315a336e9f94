from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from datetime import datetime


class WarehouseItemSchema(BaseModel):
    id: Optional[str] = None
    name: str
    quantity: float = 0.0
    unit: str = "Units"
    unit_cost: float = 0.0
    min_level: float = 0.0

    class Config:
        from_attributes = True


class WarehouseState(BaseModel):
    """Foam counters plus named items for one tenant."""
    open_cell_sets: float = 0.0
    closed_cell_sets: float = 0.0
    items: List[WarehouseItemSchema] = Field(default_factory=list)


class PurchaseOrderLine(BaseModel):
    description: str = ""
    quantity: float = 0.0
    unit_cost: float = 0.0
    total: Optional[float] = None
    type: Literal["open_cell", "closed_cell", "inventory"]
    inventory_id: Optional[str] = None


class PurchaseOrderCreate(BaseModel):
    id: Optional[str] = None
    date: Optional[datetime] = None
    vendor_name: str = ""
    status: Literal["Ordered", "Received"] = "Received"
    items: List[PurchaseOrderLine] = Field(default_factory=list)
    notes: Optional[str] = None


class PurchaseOrderResponse(BaseModel):
    id: str
    date: datetime
    vendor_name: str
    status: str
    items: List[PurchaseOrderLine]
    total_cost: float
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class MaterialLogResponse(BaseModel):
    id: str
    estimate_id: Optional[str] = None
    customer_name: Optional[str] = None
    material_name: str
    quantity: float
    unit: str
    logged_by: Optional[str] = None
    logged_at: datetime

    class Config:
        from_attributes = True


class ProfitLossResponse(BaseModel):
    id: str
    estimate_id: Optional[str] = None
    customer_name: Optional[str] = None
    invoice_number: Optional[str] = None
    date_paid: datetime
    revenue: float
    chem_cost: float
    labor_cost: float
    inventory_cost: float
    misc_cost: float
    total_cogs: float
    net_profit: float
    margin: float

    class Config:
        from_attributes = True
