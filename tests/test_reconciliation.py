from app.schemas.estimate import Actuals, InventoryLine, Materials, Reservation
from app.schemas.warehouse import WarehouseItemSchema, WarehouseState
from app.utils.reconciliation import plan_reconciliation, reconcile


def test_overage_takes_more_stock():
    warehouse = WarehouseState(open_cell_sets=6.0)
    state, plan = reconcile("e1", warehouse, Reservation(open_cell_sets=4.0), Actuals(open_cell_sets=4.5))

    assert plan.change.open_cell_sets == -0.5
    assert state.open_cell_sets == 5.5


def test_underuse_returns_stock():
    plan = plan_reconciliation(Reservation(closed_cell_sets=3.0), Actuals(closed_cell_sets=2.25))
    assert plan.change.closed_cell_sets == 0.75


def test_exact_usage_changes_nothing():
    reservation = Reservation(open_cell_sets=4.0, inventory=[InventoryLine(name="Tape", quantity=2)])
    actual = Actuals(open_cell_sets=4.0, inventory=[InventoryLine(name="Tape", quantity=2)])
    plan = plan_reconciliation(reservation, actual)
    assert plan.change.is_empty()


def test_item_deltas_by_name():
    reservation = Reservation(inventory=[InventoryLine(name="Tape", quantity=2), InventoryLine(name="Poly", quantity=1)])
    actual = Actuals(inventory=[InventoryLine(name="Tape", quantity=3)])
    warehouse = WarehouseState(items=[
        WarehouseItemSchema(name="Tape", quantity=22),
        WarehouseItemSchema(name="Poly", quantity=9),
    ])

    state, plan = reconcile("e1", warehouse, reservation, actual)

    assert plan.change.items == {"Tape": -1.0, "Poly": 1.0}
    assert {i.name: i.quantity for i in state.items} == {"Tape": 21.0, "Poly": 10.0}


def test_usage_lines_include_strokes_but_skip_zero():
    actual = Actuals(
        open_cell_sets=4.5,
        closed_cell_sets=0,
        open_cell_strokes=2950,
        inventory=[InventoryLine(name="Tape", quantity=3, unit="Rolls"), InventoryLine(name="Poly", quantity=0)],
    )
    plan = plan_reconciliation(Reservation(open_cell_sets=4.0), actual)

    assert [(u.material_name, u.quantity, u.unit) for u in plan.usage] == [
        ("Open Cell", 4.5, "Sets"),
        ("Open Cell Strokes", 2950.0, "Strokes"),
        ("Tape", 3.0, "Rolls"),
    ]
    # strokes are logged, not applied to stock
    assert plan.change.items == {"Tape": -3.0}


def test_missing_baseline_falls_back_to_materials():
    materials = Materials(open_cell_sets=4.0)
    plan = plan_reconciliation(None, Actuals(open_cell_sets=3.0), materials)

    assert plan.baseline_source == "materials"
    assert plan.change.open_cell_sets == 1.0
