from app.schemas.estimate import Actuals, Expenses, InventoryLine, Materials, OtherExpense
from app.utils.financials import compute_financials

COSTS = {"open_cell": 2000.0, "closed_cell": 2600.0, "labor_rate": 85.0}


def test_actuals_preferred_over_estimate():
    snapshot = compute_financials(
        total_value=12000,
        materials=Materials(open_cell_sets=4.0),
        actuals=Actuals(open_cell_sets=4.5, labor_hours=12),
        expenses=Expenses(man_hours=10),
        costs=COSTS,
    )
    assert snapshot.chemical_cost == 9000.0
    assert snapshot.labor_cost == 1020.0


def test_estimate_used_without_actuals():
    snapshot = compute_financials(
        total_value=8000,
        materials=Materials(open_cell_sets=1.0, closed_cell_sets=1.0),
        actuals=None,
        expenses=Expenses(man_hours=8, labor_rate=50),
        costs=COSTS,
    )
    assert snapshot.chemical_cost == 4600.0
    assert snapshot.labor_cost == 400.0
    assert snapshot.net_profit == 3000.0
    assert snapshot.margin == 0.375


def test_misc_cost_includes_other_amount():
    snapshot = compute_financials(
        total_value=1000,
        materials=Materials(),
        actuals=None,
        expenses=Expenses(trip_charge=50, fuel_surcharge=25.5, other=OtherExpense(description="Permit", amount=100)),
        costs=COSTS,
    )
    assert snapshot.misc_cost == 175.5
    assert snapshot.total_cogs == 175.5


def test_inventory_cost_falls_back_to_warehouse_price():
    snapshot = compute_financials(
        total_value=1000,
        materials=Materials(inventory=[
            InventoryLine(name="Tape", quantity=3),
            InventoryLine(name="Poly", quantity=1, unit_cost=40),
        ]),
        actuals=None,
        expenses=Expenses(),
        costs=COSTS,
        item_costs={"Tape": 6.5, "Poly": 42.0},
    )
    assert snapshot.inventory_cost == 59.5


def test_zero_revenue_has_zero_margin():
    snapshot = compute_financials(
        total_value=0,
        materials=Materials(open_cell_sets=1.0),
        actuals=None,
        expenses=Expenses(),
        costs=COSTS,
    )
    assert snapshot.revenue == 0.0
    assert snapshot.net_profit == -2000.0
    assert snapshot.margin == 0.0


def test_outputs_are_two_decimal():
    snapshot = compute_financials(
        total_value=1234.567,
        materials=Materials(open_cell_sets=0.333),
        actuals=None,
        expenses=Expenses(man_hours=1.111),
        costs=COSTS,
    )
    for value in (snapshot.revenue, snapshot.chemical_cost, snapshot.labor_cost, snapshot.net_profit):
        assert round(value, 2) == value
