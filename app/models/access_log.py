# app/models/access_log.py
"""
Access log table — one row per occupancy session.
Opened on payment confirmation (or by the overstay scan for unpaid entries),
closed when the toilet becomes available again (exit_time + duration_minutes).
"""

import uuid
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text
from app.database import Base


class AccessLog(Base):
    __tablename__ = "access_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    toilet_id = Column(String(36), nullable=False, index=True)
    payment_id = Column(String(36))            # nullable: unpaid sessions
    entry_time = Column(DateTime, nullable=False, index=True)
    exit_time = Column(DateTime)               # null while the session is open
    duration_minutes = Column(Integer)         # set on exit
    security_alert = Column(Boolean, nullable=False, default=False)
    alert_reason = Column(Text)
    created_at = Column(DateTime)

    @property
    def is_open(self) -> bool:
        return self.exit_time is None

    def __repr__(self):
        return f"<AccessLog {self.id} toilet={self.toilet_id} open={self.is_open} alert={self.security_alert}>"
