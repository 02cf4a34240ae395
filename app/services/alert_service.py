# app/services/alert_service.py
"""
Session closing and overstay alert persistence.

The overstay condition itself is derived (toilet_state.compute_occupancy_alert);
this module is where it gets written down on the access log:
  - close_open_sessions: on exit, sets exit_time + duration_minutes and flags overstays
    (judged on occupied_since, like the live rule)
  - scan_overstays: periodic scan, flags the open log of every overstaying toilet
Extend flag_access_log to add push notifications, SMS, email, etc.
"""

from datetime import datetime
from types import SimpleNamespace
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import StoreError
from app.models.access_log import AccessLog
from app.models.toilet import Toilet
from app.services.change_feed import change_feed
from app.services.toilet_state import OccupancyAlert, compute_occupancy_alert
from app.utils.logger import get_logger

logger = get_logger(__name__)


def flag_access_log(log: AccessLog, reason: str):
    """Mark a session as a security alert. Does not commit."""
    log.security_alert = True
    log.alert_reason = reason
    logger.warning(f"[ALERT][OVERSTAY] toilet={log.toilet_id} log={log.id}: {reason}")


def open_sessions(db: Session, toilet_id: str) -> list:
    return (
        db.query(AccessLog)
        .filter(AccessLog.toilet_id == toilet_id, AccessLog.exit_time.is_(None))
        .order_by(AccessLog.entry_time.desc())
        .all()
    )


def close_open_sessions(db: Session, toilet_id: str, now: datetime,
                        occupied_since: Optional[datetime] = None,
                        threshold_minutes: Optional[int] = None) -> list:
    """
    End every open session of a toilet at `now`. Does not commit.

    duration_minutes runs from entry_time (the payment) to exit. The overstay
    flag follows the live rule instead: it is measured from `occupied_since`,
    the toilet's value before the exit cleared it, so time spent between paying
    and walking in never counts. No occupied_since, no flag.
    """
    if threshold_minutes is None:
        threshold_minutes = settings.OVERSTAY_THRESHOLD_MINUTES

    alert = None
    if occupied_since is not None:
        alert = compute_occupancy_alert(
            SimpleNamespace(id=toilet_id, is_occupied=True, occupied_since=occupied_since),
            now, threshold_minutes,
        )

    closed = []
    for log in open_sessions(db, toilet_id):
        log.exit_time = now
        log.duration_minutes = max(0, int((now - log.entry_time).total_seconds() // 60))
        if alert and not log.security_alert:
            flag_access_log(log, alert.reason)
        closed.append(log)
        logger.info(f"[SESSION] Closed log {log.id} for {toilet_id} after {log.duration_minutes} min")
    return closed


def current_overstays(db: Session, now: Optional[datetime] = None,
                      threshold_minutes: Optional[int] = None) -> list:
    """Live (derived) overstays for every occupied toilet."""
    now = now or datetime.utcnow()
    toilets = db.query(Toilet).filter(Toilet.is_occupied.is_(True)).all()
    alerts = []
    for toilet in toilets:
        alert = compute_occupancy_alert(toilet, now, threshold_minutes)
        if alert:
            alerts.append(alert)
    return alerts


async def scan_overstays(db: Session, now: Optional[datetime] = None,
                         threshold_minutes: Optional[int] = None) -> list:
    """
    Persist the overstay alert for every toilet currently over the threshold.
    Flags the open session log, or opens an unpaid one if the occupant never paid.
    Returns the alerts that were newly persisted.
    """
    now = now or datetime.utcnow()
    persisted: list[OccupancyAlert] = []
    touched = []

    try:
        for alert in current_overstays(db, now, threshold_minutes):
            sessions = open_sessions(db, alert.toilet_id)
            if sessions:
                log = sessions[0]
                if log.security_alert:
                    continue
                flag_access_log(log, alert.reason)
                touched.append(("UPDATE", log))
            else:
                log = AccessLog(
                    toilet_id=alert.toilet_id,
                    payment_id=None,
                    entry_time=alert.occupied_since,
                    created_at=now,
                )
                db.add(log)
                db.flush()
                flag_access_log(log, f"{alert.reason} without payment")
                touched.append(("INSERT", log))
            persisted.append(alert)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[ALERT] Overstay scan failed: {e}", exc_info=True)
        raise StoreError("Failed to persist overstay alerts") from e

    for action, log in touched:
        change_feed.publish_row("access_logs", action, log)
    if persisted:
        logger.info(f"[ALERT] Overstay scan persisted {len(persisted)} alert(s)")
    return persisted
