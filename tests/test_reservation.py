from app.schemas.estimate import InventoryLine, Materials, Reservation
from app.schemas.warehouse import WarehouseItemSchema, WarehouseState
from app.utils.reservation import (
    StockChange,
    adjust_reservation,
    apply_change,
    find_shortages,
    net_item_deltas,
    release,
    required_from_materials,
    reserve,
)


def make_warehouse(open_cell=10.0, closed_cell=6.0, tape=24.0):
    return WarehouseState(
        open_cell_sets=open_cell,
        closed_cell_sets=closed_cell,
        items=[WarehouseItemSchema(id="t", name="Tape", quantity=tape)],
    )


def need(open_cell=0.0, closed_cell=0.0, tape=0.0):
    lines = [InventoryLine(name="Tape", quantity=tape)] if tape else []
    return Reservation(open_cell_sets=open_cell, closed_cell_sets=closed_cell, inventory=lines)


def tape_of(state):
    return next(item.quantity for item in state.items if item.name == "Tape")


def test_reserve_withdraws_and_records_baseline():
    state, reservation, change = reserve("e1", make_warehouse(), need(4.0, 1.5, 2))

    assert state.open_cell_sets == 6.0
    assert state.closed_cell_sets == 4.5
    assert tape_of(state) == 22.0
    assert reservation.open_cell_sets == 4.0
    assert change.items == {"Tape": -2.0}


def test_reserve_does_not_mutate_input():
    warehouse = make_warehouse()
    reserve("e1", warehouse, need(4.0, tape=2))
    assert warehouse.open_cell_sets == 10.0
    assert tape_of(warehouse) == 24.0


def test_reserve_then_release_conserves_stock():
    warehouse = make_warehouse()
    reserved_state, reservation, _ = reserve("e1", warehouse, need(3.25, 2.1, 5))
    released_state, _ = release("e1", reserved_state, reservation)

    assert released_state.open_cell_sets == warehouse.open_cell_sets
    assert released_state.closed_cell_sets == warehouse.closed_cell_sets
    assert tape_of(released_state) == tape_of(warehouse)


def test_adjust_applies_only_the_difference():
    state, reservation, _ = reserve("e1", make_warehouse(), need(4.0, tape=2))
    state, reservation, change = adjust_reservation("e1", state, reservation, need(5.0, tape=1))

    assert change.open_cell_sets == -1.0
    assert change.items == {"Tape": 1.0}
    assert state.open_cell_sets == 5.0
    assert tape_of(state) == 23.0
    assert reservation.open_cell_sets == 5.0


def test_adjust_with_no_difference_returns_same_state():
    warehouse = make_warehouse()
    state, _, change = adjust_reservation("e1", warehouse, need(4.0, tape=2), need(4.0, tape=2))
    assert change.is_empty()
    assert state is warehouse


def test_item_removed_from_estimate_is_returned():
    deltas = net_item_deltas([InventoryLine(name="Tape", quantity=2)], [InventoryLine(name="Poly", quantity=1)])
    assert deltas == {"Tape": 2.0, "Poly": -1.0}


def test_release_without_baseline_returns_items_only():
    materials = Materials(open_cell_sets=3.0, inventory=[InventoryLine(name="Tape", quantity=2)])
    state, change = release("legacy", make_warehouse(open_cell=7.0, tape=22.0), None, materials)

    assert state.open_cell_sets == 7.0
    assert tape_of(state) == 24.0
    assert change.open_cell_sets == 0.0


def test_unknown_item_names_are_skipped():
    state = apply_change(make_warehouse(), StockChange(items={"Nonexistent": -3.0}))
    assert [item.name for item in state.items] == ["Tape"]
    assert tape_of(state) == 24.0


def test_shortages_cover_foam_and_named_items():
    lines = find_shortages(make_warehouse(open_cell=10.0, tape=1.0), need(12.0, 0.0, 2))
    messages = [line.message() for line in lines]

    assert messages == ["Low Open Cell: Need 12.00, Have 10.00", "Low Tape: Need 2.00, Have 1.00"]


def test_no_shortage_when_stock_suffices():
    assert find_shortages(make_warehouse(), need(10.0, 6.0, 24)) == []


def test_required_from_materials_drops_existing_baseline():
    materials = Materials(open_cell_sets=4.0, reserved=Reservation(open_cell_sets=9.0))
    required = required_from_materials(materials)
    assert required.open_cell_sets == 4.0
    assert not hasattr(required, "reserved")
