"""
Server side of the bulk pull/push protocol.

A pull returns the tenant's full working set. A push is last-write-wins per
record with two exceptions:
- estimate status axes never move backwards (monotonic merge), write-once
  fields and the reserved baseline keep their stored values, and a push
  cannot sell an estimate or complete a job (those move stock);
- stock counters are server-authoritative. A push updates the item catalogue
  but never overwrites on-hand quantities; stock only moves through the
  reservation/reconciliation/PO operations, which apply deltas under lock.
"""
import logging
from datetime import datetime
from sqlalchemy.orm import Session

from app.core.exceptions import PurchaseOrderConflict
from app.core.session import SessionContext, require_office
from app.models.estimate import Estimate
from app.models.material_log import MaterialLog
from app.models.purchase_order import PurchaseOrder
from app.models.warehouse import WarehouseItem
from app.schemas.estimate import EstimateRecord
from app.schemas.sync import PushResult, TenantSnapshot
from app.schemas.warehouse import (
    MaterialLogResponse,
    PurchaseOrderCreate,
    PurchaseOrderResponse,
    WarehouseState,
)
from app.utils.company import get_company, lock_company
from app.utils.lifecycle import hold_stock_transitions, merge_estimate, require_customer_name, was_regressed
from app.utils.quantity import fixed
from app.utils.warehouse import list_items, receive_purchase_order, warehouse_state

logger = logging.getLogger(__name__)

# Estimate columns a push may write (id/company_id are fixed by the row)
ESTIMATE_FIELDS = [
    "customer_id", "status", "execution_status", "total_value", "invoice_number",
    "date", "scheduled_date", "invoice_date", "payment_terms", "assigned_crew_id",
    "notes", "customer_snapshot", "inputs", "results", "materials",
    "wall_settings", "roof_settings", "expenses", "actuals", "financials",
    "pricing_mode", "sqft_rates", "pdf_url", "work_order_url",
]
# Stored as JSON (enums as their string value)
JSON_FIELDS = {
    "status", "execution_status", "customer_snapshot", "materials",
    "expenses", "actuals", "financials",
}


def build_snapshot(db: Session, company_id: str) -> TenantSnapshot:
    company = get_company(db, company_id)

    estimates = (
        db.query(Estimate)
        .filter(Estimate.company_id == company_id)
        .order_by(Estimate.id.desc())
        .all()
    )
    purchase_orders = (
        db.query(PurchaseOrder)
        .filter(PurchaseOrder.company_id == company_id)
        .order_by(PurchaseOrder.date.desc())
        .all()
    )
    logs = (
        db.query(MaterialLog)
        .filter(MaterialLog.company_id == company_id)
        .order_by(MaterialLog.logged_at.desc())
        .all()
    )

    return TenantSnapshot(
        company_id=company.id,
        profile=company.profile or {},
        costs=company.costs or {},
        yields=company.yields or {},
        expenses=company.expenses or {},
        pricing_mode=company.pricing_mode or "level_pricing",
        sqft_rates=company.sqft_rates or {},
        warehouse=warehouse_state(db, company),
        estimates=[EstimateRecord.model_validate(e) for e in estimates],
        purchase_orders=[PurchaseOrderResponse.model_validate(po) for po in purchase_orders],
        material_logs=[MaterialLogResponse.model_validate(log) for log in logs],
    )


def _sync_item_catalogue(db: Session, company_id: str, warehouse: WarehouseState):
    """Upsert item metadata. Quantities are only taken for brand-new items."""
    existing = {item.id: item for item in list_items(db, company_id)}
    for incoming in warehouse.items:
        row = existing.get(incoming.id) if incoming.id else None
        if row is None:
            if not incoming.id:
                continue
            db.add(WarehouseItem(
                id=incoming.id,
                company_id=company_id,
                name=incoming.name,
                quantity=fixed(incoming.quantity),
                unit=incoming.unit or "Units",
                unit_cost=fixed(incoming.unit_cost),
                min_level=fixed(incoming.min_level),
            ))
            continue
        row.name = incoming.name
        row.unit = incoming.unit or "Units"
        row.unit_cost = fixed(incoming.unit_cost)
        row.min_level = fixed(incoming.min_level)


def apply_full_push(db: Session, session: SessionContext, snapshot: TenantSnapshot) -> PushResult:
    """
    Write a client's full working set. Office only; crew devices are
    sync-down-only and write through the completion endpoints instead.
    """
    require_office(session)
    company = lock_company(db, session.company_id)

    company.profile = snapshot.profile
    company.costs = snapshot.costs
    company.yields = snapshot.yields
    company.expenses = snapshot.expenses
    company.pricing_mode = snapshot.pricing_mode
    company.sqft_rates = snapshot.sqft_rates
    if snapshot.profile.get("company_name"):
        company.name = snapshot.profile["company_name"]

    _sync_item_catalogue(db, session.company_id, snapshot.warehouse)

    written = kept = held = 0
    for record in snapshot.estimates:
        incoming = record.model_dump(mode="json")
        require_customer_name(incoming.get("customer_snapshot"))

        row = db.query(Estimate).filter(Estimate.id == record.id).first()
        if row is not None and row.company_id != session.company_id:
            logger.warning("Push for %s skipped estimate %s owned by another company", session.company_id, record.id)
            continue

        existing = None
        if row is not None:
            existing = EstimateRecord.model_validate(row).model_dump(mode="json")
        merged_values = merge_estimate(existing, incoming)
        if was_regressed(existing, incoming):
            kept += 1
            logger.info(
                "Estimate %s push held at %s/%s (incoming %s/%s)",
                record.id, existing["status"], existing["execution_status"],
                incoming.get("status"), incoming.get("execution_status")
            )
        if hold_stock_transitions(existing, merged_values):
            held += 1
            logger.warning(
                "Estimate %s push to %s/%s needs the work order or completion operation; kept at %s/%s",
                record.id, incoming.get("status"), incoming.get("execution_status"),
                merged_values["status"], merged_values["execution_status"]
            )
        merged = EstimateRecord.model_validate(merged_values)

        if row is None:
            row = Estimate(id=record.id, company_id=session.company_id)
            db.add(row)
        python_values = merged.model_dump()
        json_values = merged.model_dump(mode="json")
        for field in ESTIMATE_FIELDS:
            value = json_values[field] if field in JSON_FIELDS else python_values[field]
            setattr(row, field, value)
        if row.date is None:
            row.date = datetime.utcnow()
        written += 1

    added = 0
    known = {
        po_id for (po_id,) in db.query(PurchaseOrder.id).filter(PurchaseOrder.company_id == session.company_id)
    }
    for po in snapshot.purchase_orders:
        if po.id in known:
            continue
        try:
            receive_purchase_order(db, session.company_id, PurchaseOrderCreate(
                id=po.id,
                date=po.date,
                vendor_name=po.vendor_name,
                status="Ordered" if po.status == "Ordered" else "Received",
                items=po.items,
                notes=po.notes,
            ))
        except PurchaseOrderConflict as e:
            logger.warning("Push for %s skipped purchase order: %s", session.company_id, e.message)
            continue
        added += 1

    db.flush()
    logger.info(
        "Push for %s: %d estimates written (%d held at a more advanced status, %d held for stock), "
        "%d purchase orders added",
        session.company_id, written, kept, held, added
    )
    return PushResult(
        estimates_written=written,
        estimates_kept_advanced=kept,
        estimates_held_for_stock=held,
        purchase_orders_added=added,
    )
