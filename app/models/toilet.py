# app/models/toilet.py
"""
Toilets table — one row per physical unit.
Mutated by admin edits, sensor events, payment confirmations and manual overrides.

Every write goes through toilet_store.conditional_update(), which bumps `revision`
and stamps the *_rev column of each field group it touched.
"""

import uuid
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from app.database import Base


def _new_id():
    return str(uuid.uuid4())


class Toilet(Base):
    __tablename__ = "toilets"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(200), nullable=False)
    location = Column(String(200))
    status = Column(String(20), nullable=False, default="available", index=True)  # available | occupied | maintenance
    is_occupied = Column(Boolean, nullable=False, default=False)
    occupied_since = Column(DateTime)          # set iff is_occupied
    is_paid = Column(Boolean, nullable=False, default=False)
    last_payment_time = Column(DateTime)
    manual_open_enabled = Column(Boolean, nullable=False, default=True)
    manual_open_suppressed = Column(Boolean, nullable=False, default=False)  # disabled by a payment, not by admin
    created_at = Column(DateTime)
    updated_at = Column(DateTime)

    # Optimistic concurrency
    revision = Column(Integer, nullable=False, default=0)
    identity_rev = Column(Integer, nullable=False, default=0)
    status_rev = Column(Integer, nullable=False, default=0)
    occupancy_rev = Column(Integer, nullable=False, default=0)
    payment_rev = Column(Integer, nullable=False, default=0)
    override_rev = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return (f"<Toilet {self.id} status={self.status} occupied={self.is_occupied} "
                f"paid={self.is_paid} rev={self.revision}>")
