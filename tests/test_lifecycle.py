import pytest

from app.core.exceptions import EstimateValidationError, InvalidTransition
from app.schemas.estimate import EstimateStatus, ExecutionStatus
from app.utils.lifecycle import (
    hold_stock_transitions,
    is_active_work_order,
    merge_estimate,
    require_customer_name,
    require_status,
    status_rank,
    was_regressed,
)


def record(status="Draft", execution="Not Started", **extra):
    data = {"id": "e1", "status": status, "execution_status": execution, "materials": {"open_cell_sets": 4.0}}
    data.update(extra)
    return data


def test_status_ranks_are_ordered():
    ordered = ["Draft", "Work Order", "Invoiced", "Paid", "Archived"]
    assert [status_rank(s) for s in ordered] == [0, 1, 2, 3, 4]
    assert status_rank(EstimateStatus.PAID) == 3


def test_merge_never_regresses_status():
    existing = record("Paid", "Completed")
    merged = merge_estimate(existing, record("Work Order", "In Progress", notes="stale"))

    assert merged["status"] == "Paid"
    assert merged["execution_status"] == "Completed"
    assert merged["notes"] == "stale"
    assert was_regressed(existing, record("Work Order", "In Progress"))


def test_merge_axes_are_independent():
    merged = merge_estimate(record("Draft", "Completed"), record("Invoiced", "Not Started"))
    assert merged["status"] == "Invoiced"
    assert merged["execution_status"] == "Completed"


def test_merge_accepts_advancement():
    merged = merge_estimate(record("Work Order"), record("Invoiced", "Completed"))
    assert merged["status"] == "Invoiced"
    assert not was_regressed(record("Work Order"), record("Invoiced"))


def test_merge_keeps_write_once_fields_and_baseline():
    existing = record(
        "Paid", "Completed",
        actuals={"open_cell_sets": 4.5},
        financials={"revenue": 12000.0},
        materials={"open_cell_sets": 4.0, "reserved": {"open_cell_sets": 4.0}},
    )
    merged = merge_estimate(existing, record("Work Order", actuals=None, materials={"open_cell_sets": 5.0}))

    assert merged["actuals"] == {"open_cell_sets": 4.5}
    assert merged["financials"] == {"revenue": 12000.0}
    assert merged["materials"] == {"open_cell_sets": 5.0, "reserved": {"open_cell_sets": 4.0}}


def test_merge_never_takes_an_incoming_baseline():
    existing = record(
        "Work Order",
        actuals={"open_cell_sets": 4.5},
        materials={"open_cell_sets": 6.0, "reserved": {"open_cell_sets": 6.0}},
    )
    incoming = record(
        "Work Order",
        actuals={"open_cell_sets": 1.0},
        materials={"open_cell_sets": 4.0, "reserved": {"open_cell_sets": 4.0}},
    )
    merged = merge_estimate(existing, incoming)
    assert merged["materials"] == {"open_cell_sets": 4.0, "reserved": {"open_cell_sets": 6.0}}
    assert merged["actuals"] == {"open_cell_sets": 4.5}

    new = merge_estimate(None, record(materials={"open_cell_sets": 2.0, "reserved": {"open_cell_sets": 2.0}}))
    assert new["materials"] == {"open_cell_sets": 2.0}


def test_hold_stock_transitions():
    merged = record("Work Order", "Completed")
    assert hold_stock_transitions(None, merged)
    assert (merged["status"], merged["execution_status"]) == ("Draft", "Not Started")

    merged = record("Invoiced", "In Progress")
    assert hold_stock_transitions(record("Draft", "In Progress"), merged)
    assert merged["status"] == "Draft"

    merged = record("Invoiced", "In Progress")
    assert not hold_stock_transitions(record("Work Order", "In Progress"), merged)
    assert merged["status"] == "Invoiced"

    merged = record("Archived")
    assert not hold_stock_transitions(record("Draft"), merged)


def test_merge_new_record_passes_through():
    incoming = record("Draft")
    assert merge_estimate(None, incoming) == incoming


def test_active_work_order():
    assert is_active_work_order("Work Order", "In Progress")
    assert not is_active_work_order("Work Order", ExecutionStatus.COMPLETED)
    assert not is_active_work_order("Invoiced", "Not Started")
    assert not is_active_work_order("Draft", "Not Started")


def test_customer_name_required():
    with pytest.raises(EstimateValidationError, match="Customer Name Required to Save"):
        require_customer_name({"name": "   "})
    with pytest.raises(EstimateValidationError):
        require_customer_name(None)
    require_customer_name({"name": "Jane"})


def test_require_status_rejects_other_states():
    with pytest.raises(InvalidTransition) as exc:
        require_status("e1", "mark paid", "Work Order", [EstimateStatus.INVOICED])
    assert exc.value.status_code == 409
    assert "Work Order" in exc.value.message
