# app/routers/payments.py
"""Payment messages feed for the dashboard."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.payment import PaymentOut
from app.services.payment_service import list_payments

router = APIRouter()


@router.get("/payments", response_model=list[PaymentOut], summary="Recent payments, newest first")
def get_payments(limit: int = 10, toilet_id: Optional[str] = None, db: Session = Depends(get_db)):
    return list_payments(db, limit=limit, toilet_id=toilet_id)
