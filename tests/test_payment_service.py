# tests/test_payment_service.py
"""Tests for payment confirmation: validation, atomicity and idempotency."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import datetime, timedelta
from unittest.mock import patch
from app.errors import AmountMismatchError, StoreError, ToiletNotFoundError, ValidationError
from app.models.access_log import AccessLog
from app.models.payment import Payment
from app.services.event_parser import ParsedPaymentEvent, ParsedSensorEvent
from app.services.payment_service import confirm_payment, list_payments
from app.services.sensor_service import handle_sensor_event
from app.services.toilet_service import edit_toilet
from app.services.toilet_store import get_toilet

T0 = datetime(2026, 3, 1, 10, 0, 0)


def make_event(toilet_id, amount=200, method="momo", reference="TX1", source="webhook"):
    return ParsedPaymentEvent(
        toilet_id=toilet_id, amount=amount, payment_method=method,
        payment_reference=reference, source=source,
    )


class TestConfirmPayment:

    @pytest.mark.asyncio
    async def test_success_opens_door(self, db, toilet):
        result = await confirm_payment(make_event(toilet.id), db, now=T0)

        assert result.replayed is False
        assert result.payment.amount == 200
        assert result.payment.status == "completed"
        assert result.toilet.is_paid is True
        assert result.toilet.status == "available"
        assert result.toilet.last_payment_time == T0
        assert result.toilet.manual_open_enabled is False
        assert result.access_log.payment_id == result.payment.id
        assert result.access_log.entry_time == T0
        assert result.access_log.exit_time is None
        assert result.access_log.security_alert is False

    @pytest.mark.asyncio
    async def test_wrong_amount_writes_nothing(self, db, toilet):
        with pytest.raises(AmountMismatchError):
            await confirm_payment(make_event(toilet.id, amount=150), db, now=T0)

        assert db.query(Payment).count() == 0
        assert db.query(AccessLog).count() == 0
        current = get_toilet(db, toilet.id)
        assert current.is_paid is False
        assert current.revision == 0

    @pytest.mark.asyncio
    async def test_unknown_toilet(self, db):
        with pytest.raises(ToiletNotFoundError):
            await confirm_payment(make_event("missing"), db, now=T0)
        assert db.query(Payment).count() == 0

    @pytest.mark.asyncio
    async def test_maintenance_rejected(self, db, toilet):
        edit_toilet(db, toilet.id, {"status": "maintenance"})
        with pytest.raises(ValidationError):
            await confirm_payment(make_event(toilet.id), db, now=T0)
        assert db.query(Payment).count() == 0

    @pytest.mark.asyncio
    async def test_replay_is_idempotent(self, db, toilet):
        first = await confirm_payment(make_event(toilet.id), db, now=T0)
        second = await confirm_payment(make_event(toilet.id), db, now=T0 + timedelta(seconds=5))

        assert second.replayed is True
        assert second.payment.id == first.payment.id
        assert db.query(Payment).count() == 1
        assert db.query(AccessLog).count() == 1
        assert get_toilet(db, toilet.id).revision == 1

    @pytest.mark.asyncio
    async def test_reference_reused_for_other_toilet(self, db, toilet):
        from app.services.toilet_service import create_toilet
        other = create_toilet(db, name="Block B - Unit 1")
        await confirm_payment(make_event(toilet.id), db, now=T0)
        with pytest.raises(ValidationError):
            await confirm_payment(make_event(other.id), db, now=T0)

    @pytest.mark.asyncio
    async def test_store_failure_rolls_back_payment(self, db, toilet):
        with patch("app.services.payment_service.conditional_update",
                   side_effect=StoreError("Failed to update toilet")):
            with pytest.raises(StoreError):
                await confirm_payment(make_event(toilet.id), db, now=T0)

        assert db.query(Payment).count() == 0
        assert db.query(AccessLog).count() == 0
        assert get_toilet(db, toilet.id).is_paid is False

    @pytest.mark.asyncio
    async def test_admin_form_accepts_above_tariff(self, db, toilet):
        result = await confirm_payment(
            make_event(toilet.id, amount=500, method="rfid_card", reference="CARD-1", source="admin"), db, now=T0
        )
        assert result.payment.amount == 500
        assert result.toilet.is_paid is True

    @pytest.mark.asyncio
    async def test_admin_form_below_minimum(self, db, toilet):
        with pytest.raises(AmountMismatchError):
            await confirm_payment(make_event(toilet.id, amount=100, source="admin"), db, now=T0)


class TestPaymentSession:

    @pytest.mark.asyncio
    async def test_pay_enter_leave_round_trip(self, db, toilet):
        await confirm_payment(make_event(toilet.id, reference="TX1"), db, now=T0)
        entered = await handle_sensor_event(ParsedSensorEvent(toilet.id, "occupied"), db, now=T0 + timedelta(minutes=1))
        assert entered.is_paid is True
        assert entered.manual_open_enabled is True

        left = await handle_sensor_event(ParsedSensorEvent(toilet.id, "available"), db, now=T0 + timedelta(minutes=6))
        assert left.is_paid is False
        assert left.status == "available"

        logs = db.query(AccessLog).filter(AccessLog.toilet_id == toilet.id).all()
        assert len(logs) == 1
        assert logs[0].entry_time == T0
        assert logs[0].exit_time == T0 + timedelta(minutes=6)
        assert logs[0].duration_minutes == 6
        assert logs[0].security_alert is False

    @pytest.mark.asyncio
    async def test_new_payment_closes_previous_session(self, db, toilet):
        await confirm_payment(make_event(toilet.id, reference="TX1"), db, now=T0)
        await confirm_payment(make_event(toilet.id, reference="TX2"), db, now=T0 + timedelta(minutes=4))

        open_logs = db.query(AccessLog).filter(AccessLog.exit_time.is_(None)).all()
        assert len(open_logs) == 1
        assert db.query(AccessLog).count() == 2

    @pytest.mark.asyncio
    async def test_list_payments_newest_first(self, db, toilet):
        await confirm_payment(make_event(toilet.id, reference="TX1"), db, now=T0)
        await confirm_payment(make_event(toilet.id, reference="TX2"), db, now=T0 + timedelta(minutes=1))
        refs = [p.payment_reference for p in list_payments(db, limit=10)]
        assert refs == ["TX2", "TX1"]
        assert len(list_payments(db, limit=1)) == 1
