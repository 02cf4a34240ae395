# app/schemas/access_log.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class AccessLogOut(BaseModel):
    id: str
    toilet_id: str
    payment_id: Optional[str]
    entry_time: datetime
    exit_time: Optional[datetime]
    duration_minutes: Optional[int]
    security_alert: bool
    alert_reason: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class OverstayOut(BaseModel):
    toilet_id: str
    toilet_name: Optional[str] = None
    occupied_since: datetime
    occupied_minutes: int
    threshold_minutes: int
    reason: str
