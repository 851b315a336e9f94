"""
Opt-in migration: record a reserved baseline on legacy work orders.

Work orders saved before reservations were tracked have no
materials["reserved"]. Deleting one of those returns its named items but not
its foam sets, and edits and completion fall back to the estimated
materials. This script writes the estimated materials as the baseline for
every open work order that lacks one, which is what the server assumes
anyway, so those paths stop degrading.

Run it only if the estimated quantities really were withdrawn when the job
was sold; it changes what a later delete gives back.
"""
from typing import Optional
from sqlalchemy.orm import Session
from app.database import SessionLocal
from app.models.estimate import Estimate
from app.schemas.estimate import EstimateStatus, ExecutionStatus, Materials
from app.utils.reservation import required_from_materials


def backfill(db: Session, company_id: Optional[str] = None, dry_run: bool = False) -> int:
    """Returns the number of estimates that got (or would get) a baseline."""
    query = db.query(Estimate).filter(
        Estimate.status == EstimateStatus.WORK_ORDER.value,
        Estimate.execution_status != ExecutionStatus.COMPLETED.value
    )
    if company_id:
        query = query.filter(Estimate.company_id == company_id)

    count = 0
    for estimate in query.all():
        materials = Materials.model_validate(estimate.materials or {})
        if materials.reserved is not None:
            continue
        count += 1
        print(f"  {estimate.id}: reserving {materials.open_cell_sets} OC / {materials.closed_cell_sets} CC sets")
        if dry_run:
            continue
        materials.reserved = required_from_materials(materials)
        estimate.materials = materials.model_dump(mode="json")

    if not dry_run:
        db.flush()
    return count


def migrate(dry_run: bool = False):
    """Backfill reserved baselines for all tenants."""
    print("Starting migration: Backfilling reserved baselines on open work orders...")

    db = SessionLocal()
    try:
        count = backfill(db, dry_run=dry_run)
        if dry_run:
            db.rollback()
            print(f"Dry run: {count} estimate(s) would be updated.")
        else:
            db.commit()
            print(f"✅ Backfilled {count} estimate(s).")
    except Exception as e:
        db.rollback()
        print(f"❌ Migration failed: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    import sys
    migrate(dry_run="--dry-run" in sys.argv)
