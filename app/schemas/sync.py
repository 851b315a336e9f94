from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from app.schemas.estimate import EstimateRecord
from app.schemas.warehouse import WarehouseState, PurchaseOrderResponse, MaterialLogResponse


class TenantSnapshot(BaseModel):
    """
    Full working set of one tenant, as exchanged by pull/push.

    Material logs are read-only here: the server writes them during
    reconciliation and ignores any sent back in a push.
    """
    company_id: Optional[str] = None
    profile: Dict[str, Any] = Field(default_factory=dict)
    costs: Dict[str, Any] = Field(default_factory=dict)
    yields: Dict[str, Any] = Field(default_factory=dict)
    expenses: Dict[str, Any] = Field(default_factory=dict)
    pricing_mode: str = "level_pricing"
    sqft_rates: Dict[str, float] = Field(default_factory=dict)
    warehouse: WarehouseState = Field(default_factory=WarehouseState)
    estimates: List[EstimateRecord] = Field(default_factory=list)
    purchase_orders: List[PurchaseOrderResponse] = Field(default_factory=list)
    material_logs: List[MaterialLogResponse] = Field(default_factory=list)


class PushResult(BaseModel):
    estimates_written: int
    estimates_kept_advanced: int
    estimates_held_for_stock: int = 0
    purchase_orders_added: int
