# app/services/toilet_store.py
"""
Toilet persistence with optimistic concurrency.

Each toilet carries a monotonic `revision` plus one revision stamp per field
group (identity, status, occupancy, payment, override). A write is a single
conditional UPDATE that only succeeds when none of the groups it touches or
reads has been written after the caller's expected revision:

    UPDATE toilets SET ..., revision = revision + 1, <group>_rev = revision + 1
    WHERE id = :id AND <group>_rev <= :expected ...

Writers on disjoint groups therefore both land; a stale writer on a shared
group is rejected with ConflictError instead of silently overwriting.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import ConflictError, StoreError, ToiletNotFoundError
from app.models.toilet import Toilet
from app.services.toilet_state import GROUPS, Transition
from app.utils.logger import get_logger

logger = get_logger(__name__)

REV_COLUMNS = {group: getattr(Toilet, f"{group}_rev") for group in GROUPS}


def get_toilet(db: Session, toilet_id: str) -> Toilet:
    """Load a toilet or raise ToiletNotFoundError."""
    try:
        toilet = db.get(Toilet, toilet_id, populate_existing=True)
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreError(f"Failed to load toilet '{toilet_id}': {e}") from e
    if toilet is None:
        raise ToiletNotFoundError(toilet_id)
    return toilet


def stale_groups(toilet: Toilet, groups, expected_revision: int) -> set:
    return {g for g in groups if getattr(toilet, f"{g}_rev") > expected_revision}


def conditional_update(db: Session, toilet_id: str, transition: Transition,
                       expected_revision: int, now: Optional[datetime] = None,
                       commit: bool = False) -> Toilet:
    """
    Atomically apply `transition` if no guarded group changed after `expected_revision`.
    Does not commit unless asked, so callers can bundle it with other writes.
    """
    if transition.is_noop:
        return get_toilet(db, toilet_id)

    now = now or datetime.utcnow()
    next_revision = Toilet.revision + 1
    values = dict(transition.changes)
    values["revision"] = next_revision
    values["updated_at"] = now
    for group in transition.groups:
        values[f"{group}_rev"] = next_revision

    guards = [REV_COLUMNS[g] <= expected_revision for g in sorted(transition.guarded_groups)]
    stmt = (
        update(Toilet)
        .where(Toilet.id == toilet_id, *guards)
        .values(**values)
        .execution_options(synchronize_session=False)
    )

    try:
        result = db.execute(stmt)
        if result.rowcount == 0:
            current = db.get(Toilet, toilet_id, populate_existing=True)
            if current is None:
                raise ToiletNotFoundError(toilet_id)
            stale = stale_groups(current, transition.guarded_groups, expected_revision)
            logger.info(f"[STORE] Conflict on {toilet_id}: expected rev {expected_revision}, "
                        f"now {current.revision}, stale groups {sorted(stale)}")
            raise ConflictError(toilet_id, expected_revision, stale or transition.guarded_groups)
        if commit:
            db.commit()
        toilet = db.get(Toilet, toilet_id, populate_existing=True)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[STORE] Update failed for {toilet_id}: {e}", exc_info=True)
        raise StoreError(f"Failed to update toilet '{toilet_id}'") from e

    logger.debug(f"[STORE] {toilet_id} rev {toilet.revision} groups={sorted(transition.groups)}")
    return toilet
