from .company import Company
from .warehouse import WarehouseItem
from .estimate import Estimate
from .purchase_order import PurchaseOrder
from .material_log import MaterialLog
from .profit_loss import ProfitLoss

__all__ = [
    "Company",
    "WarehouseItem",
    "Estimate",
    "PurchaseOrder",
    "MaterialLog",
    "ProfitLoss",
]
