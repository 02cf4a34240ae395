# app/schemas/toilet.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class ToiletCreate(BaseModel):
    name: str
    location: Optional[str] = None
    status: str = "available"          # available | occupied | maintenance
    manual_open_enabled: bool = True


class ToiletUpdate(BaseModel):
    """Admin edit. Only the fields sent are applied."""
    name: Optional[str] = None
    location: Optional[str] = None
    status: Optional[str] = None
    manual_open_enabled: Optional[bool] = None
    expected_revision: Optional[int] = None   # revision the admin form was loaded at


class DoorToggle(BaseModel):
    open: bool
    expected_revision: Optional[int] = None


class ToiletOut(BaseModel):
    id: str
    name: str
    location: Optional[str]
    status: str
    is_occupied: bool
    occupied_since: Optional[datetime]
    is_paid: bool
    last_payment_time: Optional[datetime]
    manual_open_enabled: bool
    revision: int
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    # Derived at read time, never stored
    occupied_minutes: Optional[int] = None
    overstay: Optional[bool] = None

    class Config:
        from_attributes = True
