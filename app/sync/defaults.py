"""
Application-default working set and the merge applied after a pull.
"""
import copy
from typing import Any, Dict, Optional

from app.schemas.estimate import Expenses
from app.utils.company import DEFAULT_COSTS, DEFAULT_SQFT_RATES, DEFAULT_YIELDS

# Sections merged key-by-key so a partial remote record keeps the defaults
# for whatever it leaves out. Every other section is replaced whole.
DEEP_MERGE_SECTIONS = ("profile", "warehouse", "costs", "yields", "expenses")

DEFAULT_SNAPSHOT: Dict[str, Any] = {
    "company_id": None,
    "profile": {
        "company_name": "",
        "address": "",
        "phone": "",
        "email": "",
        "website": "",
        "logo_url": "",
    },
    "costs": dict(DEFAULT_COSTS),
    "yields": dict(DEFAULT_YIELDS),
    "expenses": Expenses().model_dump(),
    "pricing_mode": "level_pricing",
    "sqft_rates": dict(DEFAULT_SQFT_RATES),
    "warehouse": {"open_cell_sets": 0.0, "closed_cell_sets": 0.0, "items": []},
    "estimates": [],
    "purchase_orders": [],
    "material_logs": [],
}


def default_snapshot() -> Dict[str, Any]:
    return copy.deepcopy(DEFAULT_SNAPSHOT)


def merge_over_defaults(remote: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Lay a pulled (or cached) snapshot over the defaults.

    Remote wins per top-level section; the config sections in
    DEEP_MERGE_SECTIONS are merged one level down. None values from the
    remote never blank out a default.
    """
    merged = default_snapshot()
    for key, value in (remote or {}).items():
        if value is None:
            continue
        if key in DEEP_MERGE_SECTIONS and isinstance(value, dict):
            merged[key] = {**merged.get(key, {}), **{k: v for k, v in value.items() if v is not None}}
        else:
            merged[key] = copy.deepcopy(value)
    return merged
