"""
Warehouse persistence: applying stock changes, manual edits, purchase order
receipt and low-stock reporting.

Callers commit; these functions only flush.
"""
import logging
from typing import Dict, List
from sqlalchemy.orm import Session

from app.core.exceptions import PurchaseOrderConflict
from app.models.company import Company
from app.models.purchase_order import PurchaseOrder
from app.models.warehouse import WarehouseItem
from app.schemas.warehouse import (
    PurchaseOrderCreate,
    WarehouseItemSchema,
    WarehouseState,
)
from app.utils.company import lock_company
from app.utils.ids import new_id
from app.utils.quantity import fixed, qty_add, qty_mul
from app.utils.reservation import StockChange

logger = logging.getLogger(__name__)


def list_items(db: Session, company_id: str) -> List[WarehouseItem]:
    return (
        db.query(WarehouseItem)
        .filter(WarehouseItem.company_id == company_id)
        .order_by(WarehouseItem.created_at, WarehouseItem.id)
        .all()
    )


def warehouse_state(db: Session, company: Company) -> WarehouseState:
    return WarehouseState(
        open_cell_sets=fixed(company.open_cell_sets),
        closed_cell_sets=fixed(company.closed_cell_sets),
        items=[WarehouseItemSchema.model_validate(item) for item in list_items(db, company.id)],
    )


def item_cost_lookup(db: Session, company_id: str) -> Dict[str, float]:
    return {item.name: item.unit_cost or 0.0 for item in list_items(db, company_id)}


def apply_stock_change(db: Session, company_id: str, change: StockChange) -> WarehouseState:
    """
    Add `change` to the stored counters under the company row lock.

    This is the increment/decrement primitive: deltas are applied to the
    latest stored values, never a client-computed total. Item names with no
    warehouse row are logged and skipped.
    """
    company = lock_company(db, company_id)
    if change.is_empty():
        return warehouse_state(db, company)

    company.open_cell_sets = qty_add(company.open_cell_sets, change.open_cell_sets)
    company.closed_cell_sets = qty_add(company.closed_cell_sets, change.closed_cell_sets)

    names = [name for name, delta in change.items.items() if delta]
    if names:
        rows = (
            db.query(WarehouseItem)
            .filter(WarehouseItem.company_id == company_id, WarehouseItem.name.in_(names))
            .order_by(WarehouseItem.created_at, WarehouseItem.id)
            .with_for_update()
            .all()
        )
        by_name: Dict[str, WarehouseItem] = {}
        for row in rows:
            by_name.setdefault(row.name, row)  # first match wins on duplicate names

        for name in names:
            row = by_name.get(name)
            if row is None:
                logger.warning("Company %s has no warehouse item named %r; skipping %+.2f", company_id, name, change.items[name])
                continue
            row.quantity = qty_add(row.quantity, change.items[name])

    db.flush()
    logger.info("Warehouse %s updated: %s", company_id, change.describe())
    return warehouse_state(db, company)


def replace_warehouse(db: Session, company_id: str, state: WarehouseState) -> WarehouseState:
    """
    Manual admin edit: counters and item list are replaced as given.

    Items are matched by id; rows missing from `state` are removed and items
    without an id are created.
    """
    company = lock_company(db, company_id)
    company.open_cell_sets = fixed(state.open_cell_sets)
    company.closed_cell_sets = fixed(state.closed_cell_sets)

    existing = {item.id: item for item in list_items(db, company_id)}
    keep = set()
    for incoming in state.items:
        item_id = incoming.id or new_id()
        row = existing.get(item_id)
        if row is None:
            row = WarehouseItem(id=item_id, company_id=company_id)
            db.add(row)
        row.name = incoming.name
        row.quantity = fixed(incoming.quantity)
        row.unit = incoming.unit or "Units"
        row.unit_cost = fixed(incoming.unit_cost)
        row.min_level = fixed(incoming.min_level)
        keep.add(item_id)

    for item_id, row in existing.items():
        if item_id not in keep:
            db.delete(row)

    db.flush()
    logger.info("Warehouse %s replaced: %d items", company_id, len(keep))
    return warehouse_state(db, company)


def receive_purchase_order(db: Session, company_id: str, payload: PurchaseOrderCreate) -> PurchaseOrder:
    """
    Store a purchase order and add its quantities to stock.

    Only received orders move stock. Inventory lines only count when they
    are linked to a warehouse item id. Purchase orders are never reversed.
    Re-sending a known id returns the stored order; an id belonging to
    another company raises PurchaseOrderConflict.
    """
    company = lock_company(db, company_id)

    if payload.id:
        existing = db.query(PurchaseOrder).filter(PurchaseOrder.id == payload.id).first()
        if existing and existing.company_id != company_id:
            raise PurchaseOrderConflict(payload.id)
        if existing:
            # Replayed request (e.g. an outbox retry): already applied once
            return existing

    items_by_id = {item.id: item for item in list_items(db, company_id)}
    lines = []
    total_cost = 0.0
    for line in payload.items:
        line_total = line.total if line.total is not None else qty_mul(line.quantity, line.unit_cost)
        total_cost = qty_add(total_cost, line_total)
        lines.append({**line.model_dump(), "total": fixed(line_total)})

        if payload.status != "Received":
            continue
        if line.type == "open_cell":
            company.open_cell_sets = qty_add(company.open_cell_sets, line.quantity)
        elif line.type == "closed_cell":
            company.closed_cell_sets = qty_add(company.closed_cell_sets, line.quantity)
        elif line.inventory_id and line.inventory_id in items_by_id:
            item = items_by_id[line.inventory_id]
            item.quantity = qty_add(item.quantity, line.quantity)
        else:
            logger.warning("PO line %r is not linked to a warehouse item; stock unchanged", line.description)

    po = PurchaseOrder(
        id=payload.id or new_id(),
        company_id=company_id,
        vendor_name=payload.vendor_name,
        status=payload.status,
        items=lines,
        total_cost=total_cost,
        notes=payload.notes,
    )
    if payload.date:
        po.date = payload.date
    db.add(po)
    db.flush()
    logger.info("Purchase order %s received for %s (total %.2f)", po.id, company_id, total_cost)
    return po


def low_stock_items(db: Session, company_id: str) -> List[WarehouseItem]:
    """Items at or below their reorder threshold. Items without a threshold are ignored."""
    return [
        item for item in list_items(db, company_id)
        if (item.min_level or 0) > 0 and (item.quantity or 0) <= item.min_level
    ]
