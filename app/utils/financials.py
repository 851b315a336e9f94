"""
Profit & loss snapshot for a paid job.

Pure computation. Crew actuals are preferred over the estimated materials
wherever both exist. The result is stored once and never recomputed.
"""
from typing import Any, Dict, Optional

from app.schemas.estimate import Actuals, Expenses, FinancialSnapshot, Materials
from app.utils.quantity import fixed, qty_add, qty_mul, qty_sub, ratio, to_number


def compute_financials(
    total_value: float,
    materials: Materials,
    actuals: Optional[Actuals],
    expenses: Expenses,
    costs: Dict[str, Any],
    item_costs: Optional[Dict[str, float]] = None,
) -> FinancialSnapshot:
    """
    Args:
        total_value: revenue (the estimate's price)
        materials: estimated materials snapshot
        actuals: crew actuals, if the job was completed
        expenses: estimate expenses (man hours, labor rate override, misc)
        costs: company costs {"open_cell", "closed_cell", "labor_rate"}
        item_costs: warehouse unit cost by item name, used when a line has none
    """
    item_costs = item_costs or {}
    source = actuals if actuals is not None else materials

    chem_cost = qty_add(
        qty_mul(source.open_cell_sets, costs.get("open_cell")),
        qty_mul(source.closed_cell_sets, costs.get("closed_cell")),
    )

    if actuals is not None and actuals.labor_hours is not None:
        labor_hours = to_number(actuals.labor_hours)
    else:
        labor_hours = to_number(expenses.man_hours)
    if expenses.labor_rate is not None:
        labor_rate = to_number(expenses.labor_rate)
    else:
        labor_rate = to_number(costs.get("labor_rate"))
    labor_cost = qty_mul(labor_hours, labor_rate)

    inventory_cost = 0.0
    for line in source.inventory:
        unit_cost = line.unit_cost if line.unit_cost is not None else item_costs.get(line.name, 0.0)
        inventory_cost = qty_add(inventory_cost, qty_mul(line.quantity, unit_cost))

    misc_cost = qty_add(
        qty_add(expenses.trip_charge, expenses.fuel_surcharge),
        expenses.other.amount,
    )

    revenue = fixed(total_value)
    total_cogs = qty_add(qty_add(chem_cost, labor_cost), qty_add(inventory_cost, misc_cost))
    net_profit = qty_sub(revenue, total_cogs)

    return FinancialSnapshot(
        revenue=revenue,
        chemical_cost=chem_cost,
        labor_cost=labor_cost,
        inventory_cost=inventory_cost,
        misc_cost=misc_cost,
        total_cogs=total_cogs,
        net_profit=net_profit,
        margin=ratio(net_profit, revenue),
    )
