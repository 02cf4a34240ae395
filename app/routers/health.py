# app/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB + live subscribers.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from sqlalchemy import text
from app.database import get_db
from app.config import settings
from app.services.change_feed import change_feed
from datetime import datetime

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(request: Request, db: Session = Depends(get_db)):
    """
    Returns:
    - Backend status
    - Database connectivity
    - Overstay monitor state and change-feed subscribers
    """
    monitor = getattr(request.app.state, "overstay_monitor", None)
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "overstay_monitor": "running" if monitor is not None and not monitor.done() else "stopped",
        "subscribers": change_feed.subscriber_count,
        "tariff": f"{settings.TARIFF_AMOUNT} {settings.CURRENCY}",
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    return result
