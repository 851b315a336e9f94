"""
Estimate lifecycle operations against the database.

Each function performs one transition, including its stock side effects,
inside the caller's transaction. Routers commit; a failure anywhere before
the commit leaves estimate, stock and logs untouched.

Transitions:
    save             Draft edits; active work orders re-balance their reservation
    confirm          Draft -> Work Order (reserves stock)
    start / complete crew execution axis; complete reconciles stock
    invoice          Work Order -> Invoiced
    mark_paid        Invoiced -> Paid (financial snapshot + P&L row)
    archive          soft delete
    delete           hard delete; active work orders release their reservation
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session

from app.core.exceptions import EstimateNotFound, InventoryShortage
from app.core.session import SessionContext, require_office
from app.models.estimate import Estimate
from app.models.material_log import MaterialLog
from app.models.profit_loss import ProfitLoss
from app.schemas.estimate import (
    Actuals,
    DocumentLinks,
    EstimateSave,
    EstimateStatus,
    ExecutionStatus,
    Expenses,
    InvoiceRequest,
    Materials,
)
from app.utils.company import allocate_invoice_number, get_company, lock_company
from app.utils.financials import compute_financials
from app.utils.ids import new_id
from app.utils.lifecycle import (
    is_active_work_order,
    is_sold,
    log_transition,
    require_customer_name,
    require_execution,
    require_status,
)
from app.utils.quantity import fixed, to_number
from app.utils.reconciliation import plan_reconciliation
from app.utils.reservation import (
    StockChange,
    adjust_reservation,
    find_shortages,
    release,
    required_from_materials,
    reserve,
)
from app.utils.warehouse import apply_stock_change, item_cost_lookup, warehouse_state

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def get_estimate(db: Session, company_id: str, estimate_id: str) -> Estimate:
    estimate = db.query(Estimate).filter(
        Estimate.company_id == company_id,
        Estimate.id == estimate_id
    ).first()
    if not estimate:
        raise EstimateNotFound(estimate_id)
    return estimate


def list_estimates(
    db: Session,
    company_id: str,
    include_archived: bool = False,
    status: Optional[str] = None,
) -> List[Estimate]:
    query = db.query(Estimate).filter(Estimate.company_id == company_id)
    if status:
        query = query.filter(Estimate.status == status)
    elif not include_archived:
        query = query.filter(Estimate.status != EstimateStatus.ARCHIVED.value)
    # ids are time ordered
    return query.order_by(Estimate.id.desc()).all()


def list_crew_jobs(db: Session, company_id: str, crew_id: Optional[str] = None) -> List[Estimate]:
    """Work orders the crew still has to finish."""
    query = db.query(Estimate).filter(
        Estimate.company_id == company_id,
        Estimate.status == EstimateStatus.WORK_ORDER.value,
        Estimate.execution_status != ExecutionStatus.COMPLETED.value
    )
    if crew_id:
        query = query.filter(Estimate.assigned_crew_id == crew_id)
    return query.order_by(Estimate.scheduled_date, Estimate.id).all()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def materials_of(estimate: Estimate) -> Materials:
    return Materials.model_validate(estimate.materials or {})


def _store_materials(estimate: Estimate, materials: Materials):
    # Reassign so the JSON column is flagged dirty
    estimate.materials = materials.model_dump(mode="json")


def _materials_from_payload(payload: EstimateSave) -> Materials:
    return Materials(
        open_cell_sets=fixed(payload.results.get("open_cell_sets")),
        closed_cell_sets=fixed(payload.results.get("closed_cell_sets")),
        inventory=[line.model_copy() for line in payload.inventory],
    )


# ---------------------------------------------------------------------------
# Save (create / edit)
# ---------------------------------------------------------------------------

def save_estimate(db: Session, session: SessionContext, payload: EstimateSave) -> Estimate:
    """
    Create or update an estimate from the calculator payload.

    Drafts never touch stock. Saving an active work order (sold, crew not
    finished) moves its reservation to the new requirement and applies only
    the difference to the warehouse. Invoiced/paid/completed jobs keep their
    baseline as is.
    """
    require_office(session)
    require_customer_name(payload.customer.model_dump())

    estimate = None
    if payload.id:
        estimate = db.query(Estimate).filter(
            Estimate.company_id == session.company_id,
            Estimate.id == payload.id
        ).first()

    is_new = estimate is None
    if is_new:
        get_company(db, session.company_id)
        estimate = Estimate(
            id=payload.id or new_id(),
            company_id=session.company_id,
            status=EstimateStatus.DRAFT.value,
            execution_status=ExecutionStatus.NOT_STARTED.value,
            date=datetime.utcnow(),
        )
        db.add(estimate)
        old_materials = None
    else:
        old_materials = materials_of(estimate)

    customer = payload.customer.model_dump(mode="json")
    if not customer.get("id"):
        customer["id"] = estimate.customer_id or new_id()

    estimate.customer_id = customer["id"]
    estimate.customer_snapshot = customer
    estimate.inputs = payload.inputs
    estimate.results = payload.results
    estimate.total_value = fixed(
        payload.total_value if payload.total_value is not None else payload.results.get("total_cost")
    )
    estimate.wall_settings = payload.wall_settings
    estimate.roof_settings = payload.roof_settings
    estimate.expenses = payload.expenses.model_dump(mode="json")
    estimate.notes = payload.notes
    estimate.scheduled_date = payload.scheduled_date
    estimate.invoice_date = payload.invoice_date
    estimate.payment_terms = payload.payment_terms or estimate.payment_terms or "Due on Receipt"
    estimate.assigned_crew_id = payload.assigned_crew_id
    estimate.pricing_mode = payload.pricing_mode
    estimate.sqft_rates = payload.sqft_rates
    if payload.invoice_number:
        estimate.invoice_number = payload.invoice_number

    new_materials = _materials_from_payload(payload)
    new_materials.reserved = old_materials.reserved if old_materials else None

    if old_materials is not None and is_active_work_order(estimate.status, estimate.execution_status):
        baseline = old_materials.reserved
        if baseline is None:
            # Legacy work order: estimated materials stand in for the baseline
            logger.warning("Estimate %s has no reserved baseline; adjusting against previous materials", estimate.id)
            baseline = required_from_materials(old_materials)

        company = lock_company(db, session.company_id)
        state = warehouse_state(db, company)
        _, reservation, change = adjust_reservation(
            estimate.id, state, baseline, required_from_materials(new_materials)
        )
        if not change.is_empty():
            apply_stock_change(db, session.company_id, change)
        new_materials.reserved = reservation

    _store_materials(estimate, new_materials)
    db.flush()
    logger.info("Estimate %s %s (%s)", estimate.id, "created" if is_new else "saved", estimate.status)
    return estimate


# ---------------------------------------------------------------------------
# Commercial transitions
# ---------------------------------------------------------------------------

def confirm_work_order(
    db: Session,
    session: SessionContext,
    estimate_id: str,
    allow_shortage: bool = False,
    payload: Optional[EstimateSave] = None,
) -> Tuple[Estimate, bool]:
    """
    Turn an estimate into a work order and reserve its materials.

    Returns (estimate, stock_deducted). Re-confirming an estimate that is
    already sold deducts nothing: any material edits were already balanced
    by the save path. Raises InventoryShortage when stock is short and the
    user has not accepted going negative.
    """
    require_office(session)

    if payload is not None:
        estimate = save_estimate(db, session, payload.model_copy(update={"id": estimate_id}))
    else:
        estimate = get_estimate(db, session.company_id, estimate_id)

    require_customer_name(estimate.customer_snapshot)
    require_status(
        estimate.id, "confirm", estimate.status,
        [EstimateStatus.DRAFT, EstimateStatus.WORK_ORDER, EstimateStatus.INVOICED, EstimateStatus.PAID]
    )

    if is_sold(estimate.status):
        logger.info("Estimate %s already sold; work order re-confirmed without stock deduction", estimate.id)
        return estimate, False

    company = lock_company(db, session.company_id)
    state = warehouse_state(db, company)
    materials = materials_of(estimate)
    required = required_from_materials(materials)

    shortages = find_shortages(state, required)
    if shortages and not allow_shortage:
        raise InventoryShortage(shortages)
    if shortages:
        logger.warning(
            "Estimate %s confirmed with shortage: %s",
            estimate.id, "; ".join(line.message() for line in shortages)
        )

    _, reservation, change = reserve(estimate.id, state, required)
    apply_stock_change(db, session.company_id, change)

    materials.reserved = reservation
    _store_materials(estimate, materials)
    log_transition(estimate.id, "status", estimate.status, EstimateStatus.WORK_ORDER)
    estimate.status = EstimateStatus.WORK_ORDER.value
    if not estimate.execution_status:
        estimate.execution_status = ExecutionStatus.NOT_STARTED.value

    db.flush()
    return estimate, True


def invoice_estimate(
    db: Session,
    session: SessionContext,
    estimate_id: str,
    request: Optional[InvoiceRequest] = None,
) -> Estimate:
    """
    Work Order -> Invoiced. No stock effect.

    Allocates an invoice number from the tenant sequence when the estimate
    has none. With apply_crew_actuals the crew's real usage and hours replace
    the estimated figures on the invoice.
    """
    require_office(session)
    request = request or InvoiceRequest()
    estimate = get_estimate(db, session.company_id, estimate_id)

    require_customer_name(estimate.customer_snapshot)
    require_status(estimate.id, "invoice", estimate.status, [EstimateStatus.WORK_ORDER, EstimateStatus.INVOICED])

    if not estimate.invoice_number:
        estimate.invoice_number = allocate_invoice_number(db, session.company_id)
    estimate.invoice_date = request.invoice_date or estimate.invoice_date or datetime.utcnow()
    if request.payment_terms:
        estimate.payment_terms = request.payment_terms

    if request.apply_crew_actuals and estimate.actuals:
        actuals = Actuals.model_validate(estimate.actuals)
        materials = materials_of(estimate)
        materials.open_cell_sets = fixed(actuals.open_cell_sets)
        materials.closed_cell_sets = fixed(actuals.closed_cell_sets)
        if actuals.inventory:
            materials.inventory = [line.model_copy() for line in actuals.inventory]
        _store_materials(estimate, materials)

        if actuals.labor_hours is not None:
            expenses = Expenses.model_validate(estimate.expenses or {})
            expenses.man_hours = to_number(actuals.labor_hours)
            estimate.expenses = expenses.model_dump(mode="json")

    log_transition(estimate.id, "status", estimate.status, EstimateStatus.INVOICED)
    estimate.status = EstimateStatus.INVOICED.value
    db.flush()
    return estimate


def mark_paid(db: Session, session: SessionContext, estimate_id: str) -> Tuple[Estimate, ProfitLoss]:
    """
    Invoiced -> Paid. Takes the financial snapshot and appends the P&L row.

    Uses the cost settings in force right now; the snapshot is never
    recomputed afterwards.
    """
    require_office(session)
    estimate = get_estimate(db, session.company_id, estimate_id)
    require_status(estimate.id, "mark paid", estimate.status, [EstimateStatus.INVOICED])

    company = get_company(db, session.company_id)
    actuals = Actuals.model_validate(estimate.actuals) if estimate.actuals else None
    snapshot = compute_financials(
        total_value=estimate.total_value,
        materials=materials_of(estimate),
        actuals=actuals,
        expenses=Expenses.model_validate(estimate.expenses or {}),
        costs=company.costs or {},
        item_costs=item_cost_lookup(db, session.company_id),
    )

    estimate.financials = snapshot.model_dump(mode="json")
    log_transition(estimate.id, "status", estimate.status, EstimateStatus.PAID)
    estimate.status = EstimateStatus.PAID.value

    record = ProfitLoss(
        id=new_id(),
        company_id=session.company_id,
        estimate_id=estimate.id,
        customer_name=(estimate.customer_snapshot or {}).get("name"),
        invoice_number=estimate.invoice_number,
        date_paid=datetime.utcnow(),
        revenue=snapshot.revenue,
        chem_cost=snapshot.chemical_cost,
        labor_cost=snapshot.labor_cost,
        inventory_cost=snapshot.inventory_cost,
        misc_cost=snapshot.misc_cost,
        total_cogs=snapshot.total_cogs,
        net_profit=snapshot.net_profit,
        margin=snapshot.margin,
    )
    db.add(record)
    db.flush()
    return estimate, record


def archive_estimate(db: Session, session: SessionContext, estimate_id: str) -> Estimate:
    """Soft delete. The reservation, if any, stays in place."""
    require_office(session)
    estimate = get_estimate(db, session.company_id, estimate_id)
    require_status(
        estimate.id, "archive", estimate.status,
        [EstimateStatus.DRAFT, EstimateStatus.WORK_ORDER, EstimateStatus.INVOICED, EstimateStatus.PAID]
    )
    log_transition(estimate.id, "status", estimate.status, EstimateStatus.ARCHIVED)
    estimate.status = EstimateStatus.ARCHIVED.value
    db.flush()
    return estimate


def delete_estimate(db: Session, session: SessionContext, estimate_id: str) -> StockChange:
    """
    Hard delete. An active work order gives its reservation back first;
    completed jobs and estimates that were never sold return nothing.
    """
    require_office(session)
    estimate = get_estimate(db, session.company_id, estimate_id)

    change = StockChange()
    if is_active_work_order(estimate.status, estimate.execution_status):
        materials = materials_of(estimate)
        company = lock_company(db, session.company_id)
        _, change = release(estimate.id, warehouse_state(db, company), materials.reserved, materials)
        apply_stock_change(db, session.company_id, change)

    db.delete(estimate)
    db.flush()
    logger.info("Estimate %s deleted", estimate_id)
    return change


# ---------------------------------------------------------------------------
# Execution (crew) transitions
# ---------------------------------------------------------------------------

def start_job(db: Session, session: SessionContext, estimate_id: str) -> Estimate:
    estimate = get_estimate(db, session.company_id, estimate_id)
    require_status(estimate.id, "start", estimate.status, [EstimateStatus.WORK_ORDER])
    require_execution(
        estimate.id, "start", estimate.execution_status,
        [ExecutionStatus.NOT_STARTED, ExecutionStatus.IN_PROGRESS]
    )
    log_transition(estimate.id, "execution", estimate.execution_status, ExecutionStatus.IN_PROGRESS)
    estimate.execution_status = ExecutionStatus.IN_PROGRESS.value
    db.flush()
    return estimate


def complete_job(db: Session, session: SessionContext, estimate_id: str, actuals: Actuals) -> Estimate:
    """
    Crew completion: reconcile reserved stock against actual usage.

    Stock deltas and usage logs are written before the execution status
    flips to Completed. All of it commits as one transaction.
    """
    company = lock_company(db, session.company_id)
    estimate = get_estimate(db, session.company_id, estimate_id)
    require_status(estimate.id, "complete", estimate.status, [EstimateStatus.WORK_ORDER])
    require_execution(
        estimate.id, "complete", estimate.execution_status,
        [ExecutionStatus.NOT_STARTED, ExecutionStatus.IN_PROGRESS]
    )

    actuals = actuals.model_copy(update={
        "completed_by": actuals.completed_by or session.actor,
        "completion_date": actuals.completion_date or datetime.utcnow(),
    })

    materials = materials_of(estimate)
    plan = plan_reconciliation(materials.reserved, actuals, materials)
    if plan.baseline_source != "reserved":
        logger.warning("Estimate %s has no reserved baseline; reconciling against estimated materials", estimate.id)

    apply_stock_change(db, company.id, plan.change)

    customer_name = (estimate.customer_snapshot or {}).get("name")
    logged_at = datetime.utcnow()
    for line in plan.usage:
        db.add(MaterialLog(
            id=new_id(),
            company_id=company.id,
            estimate_id=estimate.id,
            customer_name=customer_name,
            material_name=line.material_name,
            quantity=line.quantity,
            unit=line.unit,
            logged_by=actuals.completed_by,
            logged_at=logged_at,
        ))
    db.flush()

    estimate.actuals = actuals.model_dump(mode="json")
    log_transition(estimate.id, "execution", estimate.execution_status, ExecutionStatus.COMPLETED)
    estimate.execution_status = ExecutionStatus.COMPLETED.value
    db.flush()
    return estimate


def set_document_links(db: Session, session: SessionContext, estimate_id: str, links: DocumentLinks) -> Estimate:
    """Store URLs produced by the document generator."""
    estimate = get_estimate(db, session.company_id, estimate_id)
    if links.pdf_url is not None:
        estimate.pdf_url = links.pdf_url
    if links.work_order_url is not None:
        estimate.work_order_url = links.work_order_url
    db.flush()
    return estimate
