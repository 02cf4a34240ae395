# app/services/sensor_service.py
"""
Occupancy sensor events (sensor-update webhook).
Event: {toilet_id, sensor_status: occupied | available}

How it works:
  - occupied  → toilet marked occupied from now (no payment check)
  - available → toilet freed and unpaid; every open access log is closed with
                exit time, duration, and an overstay flag when applicable
  - Both are one conditional write; a stale read surfaces as ConflictError
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.models.toilet import Toilet
from app.services.event_parser import ParsedSensorEvent
from app.services.toilet_service import write_transition
from app.services.toilet_state import apply_sensor_event
from app.services.toilet_store import get_toilet
from app.utils.logger import get_logger

logger = get_logger(__name__)


async def handle_sensor_event(event: ParsedSensorEvent, db: Session,
                              now: Optional[datetime] = None) -> Toilet:
    now = now or datetime.utcnow()
    toilet = get_toilet(db, event.toilet_id)
    transition = apply_sensor_event(toilet, event.occupied, now)

    if transition.is_noop:
        logger.debug(f"[SENSOR] {event.toilet_id} already {event.sensor_status}")

    toilet = write_transition(db, toilet, transition, now, end_session=not event.occupied)
    logger.info(f"[SENSOR] Toilet={event.toilet_id} | {event.sensor_status} | "
                f"status={toilet.status} paid={toilet.is_paid} rev={toilet.revision}")
    return toilet
