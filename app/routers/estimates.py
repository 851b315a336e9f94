"""
Estimate lifecycle router.

Every transition is one request and one transaction: the service function
flushes its changes and this layer commits, or rolls back and reports the
domain error.
"""
import logging
from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import List, Optional
from app.core.exceptions import FoamProError, raise_http
from app.core.session import SessionContext, get_session_context
from app.database import get_db
from app.schemas.estimate import (
    DocumentLinks,
    EstimateResponse,
    EstimateSave,
    InvoiceRequest,
    JobCompletion,
    WorkOrderConfirm,
)
from app.schemas.warehouse import ProfitLossResponse, WarehouseState
from app.utils import estimate as estimate_service
from app.utils.company import get_company
from app.utils.documents import generate_work_order_document
from app.utils.warehouse import warehouse_state

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Estimates"])


class WorkOrderResult(BaseModel):
    estimate: EstimateResponse
    stock_deducted: bool
    warehouse: WarehouseState


class PaymentResult(BaseModel):
    estimate: EstimateResponse
    profit_loss: ProfitLossResponse


class DeleteResult(BaseModel):
    deleted: str
    warehouse: WarehouseState


@router.get("/estimates", response_model=List[EstimateResponse])
def list_estimates(
    include_archived: bool = False,
    status: Optional[str] = None,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    """
    List the company's estimates, newest first.

    Archived estimates are hidden unless include_archived is set or
    status=Archived is asked for explicitly.
    """
    return estimate_service.list_estimates(db, session.company_id, include_archived, status)


@router.get("/estimates/crew", response_model=List[EstimateResponse])
def list_crew_jobs(
    crew_id: Optional[str] = None,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    """Open work orders for the crew dashboard."""
    return estimate_service.list_crew_jobs(db, session.company_id, crew_id)


@router.get("/estimates/{estimate_id}", response_model=EstimateResponse)
def get_estimate(
    estimate_id: str,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    try:
        return estimate_service.get_estimate(db, session.company_id, estimate_id)
    except FoamProError as e:
        raise_http(e)


@router.post("/estimates", response_model=EstimateResponse)
def save_estimate(
    payload: EstimateSave,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    """
    Create or update an estimate.

    Editing an active work order moves only the difference between the old
    and new material requirement in or out of the warehouse.
    """
    try:
        estimate = estimate_service.save_estimate(db, session, payload)
        db.commit()
    except FoamProError as e:
        db.rollback()
        raise_http(e)
    db.refresh(estimate)
    return estimate


@router.post("/estimates/{estimate_id}/work-order", response_model=WorkOrderResult)
def confirm_work_order(
    estimate_id: str,
    body: WorkOrderConfirm,
    background_tasks: BackgroundTasks,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    """
    Confirm an estimate as a work order and reserve its materials.

    Returns 409 with the shortage warnings when stock is insufficient;
    re-send with allow_shortage=true to proceed into negative stock.
    """
    try:
        estimate, deducted = estimate_service.confirm_work_order(
            db, session, estimate_id, body.allow_shortage, body.estimate
        )
        db.commit()
    except FoamProError as e:
        db.rollback()
        raise_http(e)

    db.refresh(estimate)
    background_tasks.add_task(generate_work_order_document, session.company_id, estimate.id)
    return WorkOrderResult(
        estimate=EstimateResponse.model_validate(estimate),
        stock_deducted=deducted,
        warehouse=warehouse_state(db, get_company(db, session.company_id)),
    )


@router.post("/estimates/{estimate_id}/start", response_model=EstimateResponse)
def start_job(
    estimate_id: str,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    try:
        estimate = estimate_service.start_job(db, session, estimate_id)
        db.commit()
    except FoamProError as e:
        db.rollback()
        raise_http(e)
    db.refresh(estimate)
    return estimate


@router.post("/estimates/{estimate_id}/complete", response_model=EstimateResponse)
def complete_job(
    estimate_id: str,
    body: JobCompletion,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    """
    Crew completion. Reconciles reserved stock against actual usage and
    writes the usage log in the same transaction.
    """
    try:
        estimate = estimate_service.complete_job(db, session, estimate_id, body.actuals)
        db.commit()
    except FoamProError as e:
        db.rollback()
        raise_http(e)
    except Exception:
        db.rollback()
        logger.error("PARTIAL_RECONCILIATION: completion of estimate %s failed and was rolled back", estimate_id)
        raise
    db.refresh(estimate)
    return estimate


@router.post("/estimates/{estimate_id}/invoice", response_model=EstimateResponse)
def invoice_estimate(
    estimate_id: str,
    body: Optional[InvoiceRequest] = None,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    try:
        estimate = estimate_service.invoice_estimate(db, session, estimate_id, body)
        db.commit()
    except FoamProError as e:
        db.rollback()
        raise_http(e)
    db.refresh(estimate)
    return estimate


@router.post("/estimates/{estimate_id}/paid", response_model=PaymentResult)
def mark_paid(
    estimate_id: str,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    """Record payment: freezes the financial snapshot and appends a P&L row."""
    try:
        estimate, record = estimate_service.mark_paid(db, session, estimate_id)
        db.commit()
    except FoamProError as e:
        db.rollback()
        raise_http(e)
    db.refresh(estimate)
    db.refresh(record)
    return PaymentResult(
        estimate=EstimateResponse.model_validate(estimate),
        profit_loss=ProfitLossResponse.model_validate(record),
    )


@router.post("/estimates/{estimate_id}/archive", response_model=EstimateResponse)
def archive_estimate(
    estimate_id: str,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    try:
        estimate = estimate_service.archive_estimate(db, session, estimate_id)
        db.commit()
    except FoamProError as e:
        db.rollback()
        raise_http(e)
    db.refresh(estimate)
    return estimate


@router.delete("/estimates/{estimate_id}", response_model=DeleteResult)
def delete_estimate(
    estimate_id: str,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    """
    Hard delete. Stock reserved by an active work order goes back to the
    warehouse in the same transaction.
    """
    try:
        estimate_service.delete_estimate(db, session, estimate_id)
        db.commit()
    except FoamProError as e:
        db.rollback()
        raise_http(e)
    return DeleteResult(
        deleted=estimate_id,
        warehouse=warehouse_state(db, get_company(db, session.company_id)),
    )


@router.put("/estimates/{estimate_id}/documents", response_model=EstimateResponse)
def set_document_links(
    estimate_id: str,
    links: DocumentLinks,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    try:
        estimate = estimate_service.set_document_links(db, session, estimate_id, links)
        db.commit()
    except FoamProError as e:
        db.rollback()
        raise_http(e)
    db.refresh(estimate)
    return estimate
