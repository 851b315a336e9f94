"""
Reconciliation of reserved stock against crew actuals.

On completion the difference between what was reserved and what the crew
actually used goes back to (or comes out of) the warehouse, and every
positive usage line is written to the material log.
"""
import logging
from typing import List, Optional, Tuple
from pydantic import BaseModel, Field

from app.schemas.estimate import Actuals, Materials, Reservation
from app.schemas.warehouse import WarehouseState
from app.utils.quantity import fixed, qty_sub, to_number
from app.utils.reservation import StockChange, apply_change, net_item_deltas

logger = logging.getLogger(__name__)

BASELINE_RESERVED = "reserved"
BASELINE_MATERIALS = "materials"


class UsageLine(BaseModel):
    material_name: str
    quantity: float
    unit: str = "Units"


class ReconciliationPlan(BaseModel):
    change: StockChange
    usage: List[UsageLine] = Field(default_factory=list)
    baseline_source: str = BASELINE_RESERVED


def usage_lines(actual: Actuals) -> List[UsageLine]:
    """Usage log lines for every positive actual quantity, in a stable order."""
    lines: List[UsageLine] = []
    if to_number(actual.open_cell_sets) > 0:
        lines.append(UsageLine(material_name="Open Cell", quantity=fixed(actual.open_cell_sets), unit="Sets"))
    if to_number(actual.closed_cell_sets) > 0:
        lines.append(UsageLine(material_name="Closed Cell", quantity=fixed(actual.closed_cell_sets), unit="Sets"))
    if to_number(actual.open_cell_strokes) > 0:
        lines.append(UsageLine(material_name="Open Cell Strokes", quantity=fixed(actual.open_cell_strokes), unit="Strokes"))
    if to_number(actual.closed_cell_strokes) > 0:
        lines.append(UsageLine(material_name="Closed Cell Strokes", quantity=fixed(actual.closed_cell_strokes), unit="Strokes"))
    for item in actual.inventory:
        if to_number(item.quantity) > 0:
            lines.append(UsageLine(material_name=item.name, quantity=fixed(item.quantity), unit=item.unit or "Units"))
    return lines


def plan_reconciliation(
    reservation: Optional[Reservation],
    actual: Actuals,
    materials: Optional[Materials] = None,
) -> ReconciliationPlan:
    """
    Work out the stock delta and usage log for a completed job.

    Positive foam delta = less used than reserved (returned to stock),
    negative = overage. Estimates saved before reservations were tracked fall
    back to the estimated materials as the baseline.
    """
    baseline_source = BASELINE_RESERVED
    baseline = reservation
    if baseline is None:
        baseline_source = BASELINE_MATERIALS
        baseline = Reservation(
            open_cell_sets=materials.open_cell_sets if materials else 0.0,
            closed_cell_sets=materials.closed_cell_sets if materials else 0.0,
            inventory=list(materials.inventory) if materials else [],
        )

    change = StockChange(
        open_cell_sets=qty_sub(baseline.open_cell_sets, actual.open_cell_sets),
        closed_cell_sets=qty_sub(baseline.closed_cell_sets, actual.closed_cell_sets),
        items=net_item_deltas(baseline.inventory, actual.inventory),
    )
    return ReconciliationPlan(change=change, usage=usage_lines(actual), baseline_source=baseline_source)


def reconcile(
    estimate_id: str,
    warehouse: WarehouseState,
    reservation: Optional[Reservation],
    actual: Actuals,
    materials: Optional[Materials] = None,
) -> Tuple[WarehouseState, ReconciliationPlan]:
    plan = plan_reconciliation(reservation, actual, materials)
    if plan.baseline_source == BASELINE_MATERIALS:
        logger.warning("Estimate %s has no reserved baseline; reconciling against estimated materials", estimate_id)
    logger.info("Reconciling estimate %s: %s", estimate_id, plan.change.describe())
    return apply_change(warehouse, plan.change), plan
