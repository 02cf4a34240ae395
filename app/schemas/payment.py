# app/schemas/payment.py
from pydantic import BaseModel
from datetime import datetime


class ManualPaymentIn(BaseModel):
    amount: float
    payment_method: str        # momo | rfid_card
    payment_reference: str


class PaymentOut(BaseModel):
    id: str
    toilet_id: str
    amount: int
    payment_method: str
    payment_reference: str
    status: str
    created_at: datetime

    class Config:
        from_attributes = True
