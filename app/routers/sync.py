"""
Bulk sync endpoints used by the client coordinator.

GET pulls the full tenant working set; PUT pushes one back (office only).
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.core.exceptions import FoamProError, raise_http
from app.core.session import SessionContext, get_session_context
from app.database import get_db
from app.schemas.sync import PushResult, TenantSnapshot
from app.utils.sync import apply_full_push, build_snapshot

router = APIRouter(tags=["Sync"])


@router.get("/sync", response_model=TenantSnapshot)
def pull(
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    try:
        return build_snapshot(db, session.company_id)
    except FoamProError as e:
        raise_http(e)


@router.put("/sync", response_model=PushResult)
def push(
    snapshot: TenantSnapshot,
    session: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db)
):
    """
    Last-write-wins push of the full working set. Estimate statuses are
    merged monotonically; stock counters are left to the stock operations.
    """
    try:
        result = apply_full_push(db, session, snapshot)
        db.commit()
    except FoamProError as e:
        db.rollback()
        raise_http(e)
    return result
