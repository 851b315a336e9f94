"""
Inventory reservation ledger.

Policy only: these functions decide which stock movements a job causes and
return them as a StockChange, plus the resulting warehouse state for callers
that keep a local copy. They never touch the database. The server applies a
StockChange against the locked company row (app.utils.warehouse), so the
deltas land on the latest stored counters rather than overwriting them with a
client-computed total.

Sign convention: a StockChange is what gets *added* to the warehouse.
Withdrawals are negative, returns are positive.
"""
import logging
from typing import Dict, List, Optional, Tuple
from pydantic import BaseModel, Field

from app.core.exceptions import ShortageLine
from app.schemas.estimate import InventoryLine, Materials, Reservation
from app.schemas.warehouse import WarehouseState
from app.utils.quantity import fixed, qty_add, qty_sub, to_number

logger = logging.getLogger(__name__)


class StockChange(BaseModel):
    open_cell_sets: float = 0.0
    closed_cell_sets: float = 0.0
    items: Dict[str, float] = Field(default_factory=dict)  # item name -> delta

    def is_empty(self) -> bool:
        return (
            self.open_cell_sets == 0
            and self.closed_cell_sets == 0
            and not any(v != 0 for v in self.items.values())
        )

    def describe(self) -> str:
        parts = [f"open_cell={self.open_cell_sets:+.2f}", f"closed_cell={self.closed_cell_sets:+.2f}"]
        parts.extend(f"{name}={delta:+.2f}" for name, delta in sorted(self.items.items()) if delta)
        return ", ".join(parts)


def _item_totals(lines: List[InventoryLine]) -> Dict[str, float]:
    totals: Dict[str, float] = {}
    for line in lines:
        totals[line.name] = qty_add(totals.get(line.name, 0.0), line.quantity)
    return totals


def net_item_deltas(returned: List[InventoryLine], taken: List[InventoryLine]) -> Dict[str, float]:
    """
    Per-name net movement: lines in `returned` count +1, lines in `taken` -1.

    Only non-zero nets are kept. A name present on one side only is a pure
    return or a pure withdrawal.
    """
    net: Dict[str, float] = {}
    for line in returned:
        net[line.name] = qty_add(net.get(line.name, 0.0), line.quantity)
    for line in taken:
        net[line.name] = qty_sub(net.get(line.name, 0.0), line.quantity)
    return {name: delta for name, delta in net.items() if delta != 0}


def required_from_materials(materials: Materials) -> Reservation:
    """The reservable part of a materials snapshot (drops any existing baseline)."""
    return Reservation(
        open_cell_sets=fixed(materials.open_cell_sets),
        closed_cell_sets=fixed(materials.closed_cell_sets),
        inventory=[line.model_copy() for line in materials.inventory],
    )


def find_shortages(warehouse: WarehouseState, required: Reservation) -> List[ShortageLine]:
    """Materials where the requirement exceeds what is on hand."""
    lines: List[ShortageLine] = []
    open_need, closed_need = to_number(required.open_cell_sets), to_number(required.closed_cell_sets)
    if open_need > warehouse.open_cell_sets:
        lines.append(ShortageLine("Open Cell", open_need, warehouse.open_cell_sets))
    if closed_need > warehouse.closed_cell_sets:
        lines.append(ShortageLine("Closed Cell", closed_need, warehouse.closed_cell_sets))

    on_hand = {item.name: item.quantity for item in warehouse.items}
    for name, need in _item_totals(required.inventory).items():
        if name in on_hand and need > on_hand[name]:
            lines.append(ShortageLine(name, need, on_hand[name]))
    return lines


def apply_change(warehouse: WarehouseState, change: StockChange) -> WarehouseState:
    """Return a new warehouse state with `change` added. Unknown item names are skipped."""
    updated = warehouse.model_copy(deep=True)
    updated.open_cell_sets = qty_add(updated.open_cell_sets, change.open_cell_sets)
    updated.closed_cell_sets = qty_add(updated.closed_cell_sets, change.closed_cell_sets)

    by_name = {item.name: item for item in updated.items}
    for name, delta in change.items.items():
        if not delta:
            continue
        item = by_name.get(name)
        if item is None:
            logger.warning("No warehouse item named %r; skipping stock delta %+.2f", name, delta)
            continue
        item.quantity = qty_add(item.quantity, delta)
    return updated


def reserve(
    estimate_id: str,
    warehouse: WarehouseState,
    required: Reservation,
) -> Tuple[WarehouseState, Reservation, StockChange]:
    """
    Withdraw the required quantities and record them as the reserved baseline.

    Negative results are allowed: the caller has already shown the shortage
    warning and the user chose to proceed.
    """
    reservation = Reservation(
        open_cell_sets=fixed(required.open_cell_sets),
        closed_cell_sets=fixed(required.closed_cell_sets),
        inventory=[line.model_copy() for line in required.inventory],
    )
    change = StockChange(
        open_cell_sets=-reservation.open_cell_sets,
        closed_cell_sets=-reservation.closed_cell_sets,
        items=net_item_deltas([], reservation.inventory),
    )
    logger.info("Reserving stock for estimate %s: %s", estimate_id, change.describe())
    return apply_change(warehouse, change), reservation, change


def adjust_reservation(
    estimate_id: str,
    warehouse: WarehouseState,
    old_reserved: Reservation,
    new_required: Reservation,
) -> Tuple[WarehouseState, Reservation, StockChange]:
    """
    Move an active work order's baseline from old_reserved to new_required.

    delta = old - new per material: positive returns stock, negative takes
    more. When nothing differs the warehouse state is returned untouched.
    """
    change = StockChange(
        open_cell_sets=qty_sub(old_reserved.open_cell_sets, new_required.open_cell_sets),
        closed_cell_sets=qty_sub(old_reserved.closed_cell_sets, new_required.closed_cell_sets),
        items=net_item_deltas(old_reserved.inventory, new_required.inventory),
    )
    reservation = Reservation(
        open_cell_sets=fixed(new_required.open_cell_sets),
        closed_cell_sets=fixed(new_required.closed_cell_sets),
        inventory=[line.model_copy() for line in new_required.inventory],
    )
    if change.is_empty():
        return warehouse, reservation, change

    logger.info("Adjusting reservation for estimate %s: %s", estimate_id, change.describe())
    return apply_change(warehouse, change), reservation, change


def release(
    estimate_id: str,
    warehouse: WarehouseState,
    reservation: Optional[Reservation],
    materials: Optional[Materials] = None,
) -> Tuple[WarehouseState, StockChange]:
    """
    Return a reservation to stock (hard delete of an active work order).

    Legacy estimates have no baseline; for those only the named items from
    `materials` go back. Foam sets are NOT returned on that path because
    nothing recorded how much foam was actually taken.
    """
    if reservation is not None:
        change = StockChange(
            open_cell_sets=fixed(reservation.open_cell_sets),
            closed_cell_sets=fixed(reservation.closed_cell_sets),
            items=net_item_deltas(reservation.inventory, []),
        )
    else:
        logger.warning(
            "Estimate %s has no reserved baseline; returning named items only, foam sets are not restored",
            estimate_id,
        )
        legacy_lines = materials.inventory if materials is not None else []
        change = StockChange(items=net_item_deltas(legacy_lines, []))

    logger.info("Releasing stock for estimate %s: %s", estimate_id, change.describe())
    return apply_change(warehouse, change), change
