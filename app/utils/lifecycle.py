"""
Estimate lifecycle rules.

Commercial status and execution status are two independent axes; each has
its own rank so "more advanced" can be decided per axis. Transition guards
live here; the database side effects live in app.utils.estimate.
"""
import logging
from typing import Any, Dict, Iterable, Optional

from app.core.exceptions import EstimateValidationError, InvalidTransition
from app.schemas.estimate import EstimateStatus, ExecutionStatus

logger = logging.getLogger(__name__)

STATUS_RANK = {
    EstimateStatus.DRAFT.value: 0,
    EstimateStatus.WORK_ORDER.value: 1,
    EstimateStatus.INVOICED.value: 2,
    EstimateStatus.PAID.value: 3,
    EstimateStatus.ARCHIVED.value: 4,
}

EXECUTION_RANK = {
    ExecutionStatus.NOT_STARTED.value: 0,
    ExecutionStatus.IN_PROGRESS.value: 1,
    ExecutionStatus.COMPLETED.value: 2,
}

SOLD_STATUSES = (
    EstimateStatus.WORK_ORDER.value,
    EstimateStatus.INVOICED.value,
    EstimateStatus.PAID.value,
)

# Fields that are written once and never replaced by a full-record push
WRITE_ONCE_FIELDS = ("actuals", "financials")


def _value(status: Any) -> str:
    return status.value if hasattr(status, "value") else str(status)


def status_rank(status: Any) -> int:
    return STATUS_RANK.get(_value(status), 0)


def execution_rank(execution_status: Any) -> int:
    return EXECUTION_RANK.get(_value(execution_status), 0)


def is_sold(status: Any) -> bool:
    return _value(status) in SOLD_STATUSES


def is_active_work_order(status: Any, execution_status: Any) -> bool:
    """A work order whose stock is still reserved (crew has not completed it)."""
    return (
        _value(status) == EstimateStatus.WORK_ORDER.value
        and _value(execution_status) != ExecutionStatus.COMPLETED.value
    )


def require_customer_name(customer: Optional[Dict[str, Any]]):
    name = (customer or {}).get("name") or ""
    if not str(name).strip():
        raise EstimateValidationError("Customer Name Required to Save")


def require_status(estimate_id: str, action: str, current: Any, allowed: Iterable[Any]):
    allowed_values = {_value(s) for s in allowed}
    if _value(current) not in allowed_values:
        raise InvalidTransition(estimate_id, action, _value(current))


def require_execution(estimate_id: str, action: str, current: Any, allowed: Iterable[Any]):
    allowed_values = {_value(s) for s in allowed}
    if _value(current) not in allowed_values:
        raise InvalidTransition(estimate_id, action, _value(current))


def log_transition(estimate_id: str, axis: str, old: Any, new: Any):
    if _value(old) != _value(new):
        logger.info("Estimate %s %s: %s -> %s", estimate_id, axis, _value(old), _value(new))


def merge_estimate(existing: Optional[Dict[str, Any]], incoming: Dict[str, Any]) -> Dict[str, Any]:
    """
    Monotonic merge of an incoming full estimate record over a stored one.

    The incoming record wins (last write wins) except that neither status
    axis may move backwards and write-once fields (crew actuals, payment
    financials) keep their stored value once set. The reserved baseline
    belongs to the server: the stored one is always kept and an incoming
    one is never taken.
    """
    merged = dict(incoming)
    stored_reserved = ((existing or {}).get("materials") or {}).get("reserved")
    if merged.get("materials") is not None or stored_reserved:
        materials = dict(merged.get("materials") or {})
        if stored_reserved:
            materials["reserved"] = stored_reserved
        else:
            materials.pop("reserved", None)
        merged["materials"] = materials

    if not existing:
        return merged

    if status_rank(existing.get("status")) > status_rank(incoming.get("status")):
        merged["status"] = existing.get("status")
    if execution_rank(existing.get("execution_status")) > execution_rank(incoming.get("execution_status")):
        merged["execution_status"] = existing.get("execution_status")

    for field in WRITE_ONCE_FIELDS:
        if existing.get(field):
            merged[field] = existing[field]

    return merged


def hold_stock_transitions(existing: Optional[Dict[str, Any]], merged: Dict[str, Any]) -> bool:
    """
    Undo transitions in a merged push that would need a stock movement.

    Selling an estimate reserves stock and completing a job reconciles it;
    both only happen through their own operations. A pushed record therefore
    cannot move from an unsold status into a sold one, or into Completed.
    Returns True when `merged` was held back.
    """
    stored_status = (existing or {}).get("status") or EstimateStatus.DRAFT.value
    stored_execution = (existing or {}).get("execution_status") or ExecutionStatus.NOT_STARTED.value
    held = False

    if is_sold(merged.get("status")) and not is_sold(stored_status):
        merged["status"] = _value(stored_status)
        held = True
    completed = ExecutionStatus.COMPLETED.value
    if _value(merged.get("execution_status")) == completed and _value(stored_execution) != completed:
        merged["execution_status"] = _value(stored_execution)
        held = True
    return held


def was_regressed(existing: Optional[Dict[str, Any]], incoming: Dict[str, Any]) -> bool:
    """True when merge_estimate had to hold back at least one status axis."""
    if not existing:
        return False
    return (
        status_rank(existing.get("status")) > status_rank(incoming.get("status"))
        or execution_rank(existing.get("execution_status")) > execution_rank(incoming.get("execution_status"))
    )
