# app/models/payment.py
"""
Payments table — one row per confirmed payment event. Never updated.
payment_reference is unique: replays of the same reference are idempotent.
"""

import uuid
from sqlalchemy import Column, Integer, String, DateTime
from app.database import Base


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    toilet_id = Column(String(36), nullable=False, index=True)   # no FK: toilets may be deleted
    amount = Column(Integer, nullable=False)
    payment_method = Column(String(20), nullable=False)           # momo | rfid_card
    payment_reference = Column(String(200), unique=True, nullable=False, index=True)
    status = Column(String(20), nullable=False, default="completed")  # pending | completed | failed
    created_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<Payment {self.id} toilet={self.toilet_id} amount={self.amount} ref={self.payment_reference}>"
