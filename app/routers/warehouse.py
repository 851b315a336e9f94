"""
Warehouse router: stock levels, manual edits, purchase orders and the
usage / profit & loss ledgers.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
from app.core.exceptions import FoamProError, raise_http
from app.core.session import SessionContext, get_session_context, require_office
from app.database import get_db
from app.models.material_log import MaterialLog
from app.models.profit_loss import ProfitLoss
from app.models.purchase_order import PurchaseOrder
from app.schemas.warehouse import (
    MaterialLogResponse,
    ProfitLossResponse,
    PurchaseOrderCreate,
    PurchaseOrderResponse,
    WarehouseItemSchema,
    WarehouseState,
)
from app.utils.company import get_company
from app.utils.warehouse import (
    low_stock_items,
    receive_purchase_order,
    replace_warehouse,
    warehouse_state,
)

router = APIRouter(tags=["Warehouse"])


@router.get("/warehouse", response_model=WarehouseState)
def get_warehouse(
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    try:
        return warehouse_state(db, get_company(db, session.company_id))
    except FoamProError as e:
        raise_http(e)


@router.put("/warehouse", response_model=WarehouseState)
def update_warehouse(
    state: WarehouseState,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    """
    Manual stock correction by the office.

    Replaces counters and the item list as sent. Items omitted from the
    request are removed.
    """
    try:
        require_office(session)
        result = replace_warehouse(db, session.company_id, state)
        db.commit()
    except FoamProError as e:
        db.rollback()
        raise_http(e)
    return result


@router.get("/warehouse/low-stock", response_model=List[WarehouseItemSchema])
def get_low_stock(
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    return low_stock_items(db, session.company_id)


@router.post("/warehouse/purchase-orders", response_model=PurchaseOrderResponse)
def create_purchase_order(
    payload: PurchaseOrderCreate,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    """
    Record a purchase order. Received orders add their foam sets and linked
    inventory lines to stock. Re-sending the same id is a no-op.
    """
    try:
        require_office(session)
        po = receive_purchase_order(db, session.company_id, payload)
        db.commit()
    except FoamProError as e:
        db.rollback()
        raise_http(e)
    db.refresh(po)
    return po


@router.get("/warehouse/purchase-orders", response_model=List[PurchaseOrderResponse])
def list_purchase_orders(
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    return (
        db.query(PurchaseOrder)
        .filter(PurchaseOrder.company_id == session.company_id)
        .order_by(PurchaseOrder.date.desc())
        .all()
    )


@router.get("/warehouse/usage-logs", response_model=List[MaterialLogResponse])
def list_usage_logs(
    estimate_id: Optional[str] = None,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    """Material usage recorded at job completion, newest first."""
    query = db.query(MaterialLog).filter(MaterialLog.company_id == session.company_id)
    if estimate_id:
        query = query.filter(MaterialLog.estimate_id == estimate_id)
    return query.order_by(MaterialLog.logged_at.desc(), MaterialLog.id).all()


@router.get("/warehouse/profit-loss", response_model=List[ProfitLossResponse])
def list_profit_loss(
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    return (
        db.query(ProfitLoss)
        .filter(ProfitLoss.company_id == session.company_id)
        .order_by(ProfitLoss.date_paid.desc())
        .all()
    )
