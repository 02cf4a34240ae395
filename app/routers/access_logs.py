# app/routers/access_logs.py
"""Access log + security alert endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.access_log import AccessLog
from app.models.toilet import Toilet
from app.schemas.access_log import AccessLogOut, OverstayOut
from app.services.alert_service import current_overstays

router = APIRouter()


@router.get("/access-logs", response_model=list[AccessLogOut], summary="Recent sessions, newest first")
def get_access_logs(
    limit: int = 20,
    toilet_id: Optional[str] = None,
    security_alert: Optional[bool] = None,
    db: Session = Depends(get_db),
):
    """Filter by toilet_id or security_alert."""
    q = db.query(AccessLog)
    if toilet_id:
        q = q.filter(AccessLog.toilet_id == toilet_id)
    if security_alert is not None:
        q = q.filter(AccessLog.security_alert.is_(security_alert))
    return q.order_by(AccessLog.entry_time.desc()).limit(limit).all()


@router.get("/alerts/overstay", response_model=list[OverstayOut], summary="Toilets currently over the limit")
def get_overstays(db: Session = Depends(get_db)):
    """Live view, computed from occupied_since. Persisted alerts are on /access-logs?security_alert=true."""
    alerts = current_overstays(db)
    names = dict(db.query(Toilet.id, Toilet.name).filter(Toilet.id.in_([a.toilet_id for a in alerts])).all())
    return [
        OverstayOut(
            toilet_id=a.toilet_id,
            toilet_name=names.get(a.toilet_id),
            occupied_since=a.occupied_since,
            occupied_minutes=a.occupied_minutes,
            threshold_minutes=a.threshold_minutes,
            reason=a.reason,
        )
        for a in alerts
    ]
