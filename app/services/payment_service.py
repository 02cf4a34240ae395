# app/services/payment_service.py
"""
Payment confirmations (payment-webhook + admin manual payment form).
Event: {toilet_id, amount, payment_method, payment_reference}

How it works:
  - Amount/method validated first; nothing is written on failure
  - payment_reference is the idempotency key: a replay for the same toilet
    returns the original payment, a reuse for another toilet is rejected
  - Payment insert + toilet update + access-log insert commit as one
    transaction; any failure rolls back all three
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import StoreError, ToiletError, ValidationError
from app.models.access_log import AccessLog
from app.models.payment import Payment
from app.models.toilet import Toilet
from app.services.alert_service import close_open_sessions
from app.services.change_feed import change_feed
from app.services.event_parser import ParsedPaymentEvent
from app.services.toilet_state import apply_payment_confirmation, validate_payment
from app.services.toilet_store import conditional_update, get_toilet
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class PaymentResult:
    payment: Payment
    toilet: Optional[Toilet] = None
    access_log: Optional[AccessLog] = None
    replayed: bool = False


def find_payment_by_reference(db: Session, reference: str) -> Optional[Payment]:
    return db.query(Payment).filter(Payment.payment_reference == reference).first()


def list_payments(db: Session, limit: int = 10, toilet_id: Optional[str] = None) -> list:
    q = db.query(Payment)
    if toilet_id:
        q = q.filter(Payment.toilet_id == toilet_id)
    return q.order_by(Payment.created_at.desc()).limit(limit).all()


def _replay(existing: Payment, event: ParsedPaymentEvent) -> PaymentResult:
    if existing.toilet_id != event.toilet_id:
        raise ValidationError(
            f"payment_reference '{event.payment_reference}' was already used for another toilet"
        )
    logger.info(f"[PAYMENT] Replay of ref={event.payment_reference} → payment {existing.id}, no changes")
    return PaymentResult(payment=existing, replayed=True)


async def confirm_payment(event: ParsedPaymentEvent, db: Session,
                          now: Optional[datetime] = None) -> PaymentResult:
    now = now or datetime.utcnow()
    amount = validate_payment(event.amount, event.payment_method, exact=event.exact_amount)

    existing = find_payment_by_reference(db, event.payment_reference)
    if existing:
        return _replay(existing, event)

    toilet = get_toilet(db, event.toilet_id)
    expected_revision = toilet.revision
    occupied_since = toilet.occupied_since
    transition = apply_payment_confirmation(
        toilet, event.amount, event.payment_method, event.payment_reference, now,
        exact=event.exact_amount,
    )

    payment = Payment(
        toilet_id=toilet.id,
        amount=amount,
        payment_method=event.payment_method,
        payment_reference=event.payment_reference,
        status="completed",
        created_at=now,
    )
    try:
        db.add(payment)
        db.flush()
        toilet = conditional_update(db, toilet.id, transition, expected_revision, now=now)
        closed = close_open_sessions(db, toilet.id, now, occupied_since=occupied_since)
        log = AccessLog(
            toilet_id=toilet.id,
            payment_id=payment.id,
            entry_time=now,
            exit_time=None,
            duration_minutes=None,
            security_alert=False,
            alert_reason=None,
            created_at=now,
        )
        db.add(log)
        db.commit()
    except IntegrityError:
        # Same reference committed by a concurrent request
        db.rollback()
        existing = find_payment_by_reference(db, event.payment_reference)
        if existing is None:
            raise StoreError("Failed to create payment record")
        return _replay(existing, event)
    except ToiletError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[PAYMENT] Transaction failed for {event.toilet_id}: {e}", exc_info=True)
        raise StoreError("Failed to record payment") from e

    logger.info(f"[PAYMENT] Toilet={toilet.id} | {amount} {settings.CURRENCY} via {payment.payment_method} "
                f"| ref={payment.payment_reference} → payment {payment.id}, door opened")

    change_feed.publish_row("payments", "INSERT", payment)
    change_feed.publish_row("toilets", "UPDATE", toilet)
    for old in closed:
        change_feed.publish_row("access_logs", "UPDATE", old)
    change_feed.publish_row("access_logs", "INSERT", log)
    return PaymentResult(payment=payment, toilet=toilet, access_log=log)
