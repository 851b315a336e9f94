from .estimate import (
    EstimateStatus,
    ExecutionStatus,
    InventoryLine,
    Reservation,
    Materials,
    Actuals,
    OtherExpense,
    Expenses,
    FinancialSnapshot,
    CustomerSnapshot,
    EstimateSave,
    EstimateRecord,
    EstimateResponse,
    WorkOrderConfirm,
    JobCompletion,
    InvoiceRequest,
    DocumentLinks,
)
from .warehouse import (
    WarehouseItemSchema,
    WarehouseState,
    PurchaseOrderLine,
    PurchaseOrderCreate,
    PurchaseOrderResponse,
    MaterialLogResponse,
    ProfitLossResponse,
)
from .sync import TenantSnapshot, PushResult
