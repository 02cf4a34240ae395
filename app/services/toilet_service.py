# app/services/toilet_service.py
"""
Admin operations on toilets: create, edit, delete, manual open, door toggle.
Also hosts write_transition(), the shared commit path used by the sensor service.
Used by the toilets router.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import StoreError, ToiletError, ValidationError
from app.models.toilet import Toilet
from app.services.alert_service import close_open_sessions
from app.services.change_feed import change_feed
from app.services.toilet_state import (
    TOILET_STATUSES,
    Transition,
    apply_admin_edit,
    apply_door_toggle,
    apply_manual_open,
)
from app.services.toilet_store import conditional_update, get_toilet
from app.utils.logger import get_logger

logger = get_logger(__name__)


def write_transition(db: Session, toilet: Toilet, transition: Transition, now: datetime,
                     expected_revision: Optional[int] = None, end_session: bool = False) -> Toilet:
    """
    Conditionally write a transition and, when the toilet became free, close its
    open sessions, all in one commit. Publishes the changes afterwards.
    """
    toilet_id = toilet.id
    expected = toilet.revision if expected_revision is None else expected_revision
    occupied_since = toilet.occupied_since   # the update below refreshes `toilet`
    closed = []
    try:
        updated = conditional_update(db, toilet_id, transition, expected, now=now)
        if end_session:
            closed = close_open_sessions(db, toilet_id, now, occupied_since=occupied_since)
        db.commit()
    except ToiletError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[STORE] Commit failed for {toilet_id}: {e}", exc_info=True)
        raise StoreError(f"Failed to update toilet '{toilet_id}'") from e

    if not transition.is_noop:
        change_feed.publish_row("toilets", "UPDATE", updated)
    for log in closed:
        change_feed.publish_row("access_logs", "UPDATE", log)
    return updated


def list_toilets(db: Session) -> list:
    return db.query(Toilet).order_by(Toilet.name).all()


def create_toilet(db: Session, name: str, location: Optional[str] = None,
                  status: str = "available", manual_open_enabled: bool = True,
                  now: Optional[datetime] = None) -> Toilet:
    """New toilets start unoccupied and unpaid."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name must be a non-empty string")
    if status not in TOILET_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(TOILET_STATUSES)}")

    now = now or datetime.utcnow()
    toilet = Toilet(
        name=name.strip(),
        location=location,
        status=status,
        is_occupied=False,
        occupied_since=None,
        is_paid=False,
        last_payment_time=None,
        manual_open_enabled=manual_open_enabled,
        manual_open_suppressed=False,
        created_at=now,
        updated_at=now,
    )
    try:
        db.add(toilet)
        db.commit()
        db.refresh(toilet)
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreError(f"Failed to create toilet: {e}") from e

    logger.info(f"[ADMIN] Created toilet {toilet.id} ({toilet.name})")
    change_feed.publish_row("toilets", "INSERT", toilet)
    return toilet


def edit_toilet(db: Session, toilet_id: str, fields: dict,
                expected_revision: Optional[int] = None, now: Optional[datetime] = None) -> Toilet:
    now = now or datetime.utcnow()
    toilet = get_toilet(db, toilet_id)
    transition = apply_admin_edit(toilet, fields)
    # Maintenance policy may clear occupancy; that ends the session too
    ends_session = transition.changes.get("is_occupied") is False
    toilet = write_transition(db, toilet, transition, now, expected_revision, end_session=ends_session)
    if not transition.is_noop:
        logger.info(f"[ADMIN] Edited {toilet_id}: {sorted(transition.changes)}")
    return toilet


def delete_toilet(db: Session, toilet_id: str):
    """Payments and access logs are kept; they may reference a deleted toilet."""
    toilet = get_toilet(db, toilet_id)
    try:
        db.delete(toilet)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreError(f"Failed to delete toilet '{toilet_id}': {e}") from e
    logger.info(f"[ADMIN] Deleted toilet {toilet_id}")
    change_feed.publish("toilets", "DELETE", {"id": toilet_id})


def manual_open(db: Session, toilet_id: str, expected_revision: Optional[int] = None,
                now: Optional[datetime] = None) -> Toilet:
    now = now or datetime.utcnow()
    toilet = get_toilet(db, toilet_id)
    transition = apply_manual_open(toilet, now)
    toilet = write_transition(db, toilet, transition, now, expected_revision, end_session=True)
    logger.info(f"[ADMIN] Manual open on {toilet_id}")
    return toilet


def toggle_door(db: Session, toilet_id: str, open: bool, expected_revision: Optional[int] = None,
                now: Optional[datetime] = None) -> Toilet:
    now = now or datetime.utcnow()
    toilet = get_toilet(db, toilet_id)
    transition = apply_door_toggle(toilet, open, now)
    toilet = write_transition(db, toilet, transition, now, expected_revision, end_session=open)
    logger.info(f"[ADMIN] Door {'opened' if open else 'closed'} on {toilet_id}")
    return toilet
