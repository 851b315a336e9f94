"""
Work-order document generation hook.

Rendering itself happens elsewhere; a generator is any callable that takes
the finalized estimate record and returns the URL of the produced document
(or None). The default generator only logs. The returned URL is the single
piece of feedback stored back on the estimate.
"""
import logging
from typing import Callable, Optional

from app.database import SessionLocal
from app.models.estimate import Estimate
from app.schemas.estimate import EstimateRecord

logger = logging.getLogger(__name__)

DocumentGenerator = Callable[[EstimateRecord], Optional[str]]


def _log_only(record: EstimateRecord) -> Optional[str]:
    logger.info("Work order document requested for estimate %s (no generator configured)", record.id)
    return None


_generator: DocumentGenerator = _log_only


def set_work_order_generator(generator: Optional[DocumentGenerator]):
    global _generator
    _generator = generator or _log_only


def generate_work_order_document(company_id: str, estimate_id: str):
    """
    Background task run after a work order is confirmed.

    Uses its own session since the request session is closed by then.
    Generator failures are logged and leave the estimate untouched.
    """
    db = SessionLocal()
    try:
        estimate = db.query(Estimate).filter(
            Estimate.company_id == company_id,
            Estimate.id == estimate_id
        ).first()
        if not estimate:
            logger.warning("Estimate %s disappeared before its work order could be generated", estimate_id)
            return

        try:
            url = _generator(EstimateRecord.model_validate(estimate))
        except Exception as e:
            logger.error("Work order generation failed for estimate %s: %s", estimate_id, e)
            return

        if url:
            estimate.work_order_url = url
            db.commit()
            logger.info("Work order document for estimate %s stored at %s", estimate_id, url)
    finally:
        db.close()
