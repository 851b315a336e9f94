"""
Domain errors raised by the estimate/warehouse services.

Utilities raise these; routers turn them into HTTP responses with
``raise_http``. The sync client reports ``RemotePersistenceError`` as a
notification instead of propagating it.
"""
from typing import List, Optional
from fastapi import HTTPException, status


class FoamProError(Exception):
    """Base class for every error the core raises on purpose."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def detail(self):
        return self.message


class EstimateValidationError(FoamProError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class EstimateNotFound(FoamProError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, estimate_id: str):
        super().__init__(f"Estimate '{estimate_id}' not found")
        self.estimate_id = estimate_id


class TenantNotFound(FoamProError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, company_id: str):
        super().__init__(f"Company '{company_id}' not found")
        self.company_id = company_id


class InvalidTransition(FoamProError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, estimate_id: str, action: str, current: str):
        super().__init__(f"Cannot {action} estimate '{estimate_id}' while it is '{current}'")
        self.estimate_id = estimate_id
        self.action = action
        self.current = current


class RoleForbidden(FoamProError):
    status_code = status.HTTP_403_FORBIDDEN


class PurchaseOrderConflict(FoamProError):
    """The purchase order id is already taken by another company."""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, purchase_order_id: str):
        super().__init__(f"Purchase order id '{purchase_order_id}' is already in use")
        self.purchase_order_id = purchase_order_id


class ShortageLine:
    def __init__(self, material: str, required: float, available: float):
        self.material = material
        self.required = required
        self.available = available

    def message(self) -> str:
        return f"Low {self.material}: Need {self.required:.2f}, Have {self.available:.2f}"

    def as_dict(self):
        return {"material": self.material, "required": self.required, "available": self.available}


class InventoryShortage(FoamProError):
    """Not a failure: the caller may confirm and retry with allow_shortage."""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, lines: List[ShortageLine]):
        super().__init__("Inventory shortage detected")
        self.lines = lines

    def detail(self):
        return {
            "message": self.message,
            "warnings": [line.message() for line in self.lines],
            "shortages": [line.as_dict() for line in self.lines],
        }


class RemotePersistenceError(FoamProError):
    """
    Raised by sync transports when the remote store rejects or is unreachable.

    retryable is False when the server answered with a client error; sending
    the same request again would only fail again.
    """
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, cause: Optional[Exception] = None, retryable: bool = True):
        super().__init__(message)
        self.cause = cause
        self.retryable = retryable


def raise_http(exc: FoamProError):
    raise HTTPException(status_code=exc.status_code, detail=exc.detail())
