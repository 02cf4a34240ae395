# tests/test_sensor_service.py
"""Tests for the sensor-update handler."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import datetime, timedelta
from app.errors import ToiletNotFoundError
from app.models.access_log import AccessLog
from app.services.event_parser import ParsedSensorEvent
from app.services.sensor_service import handle_sensor_event
from app.services.toilet_service import edit_toilet

T0 = datetime(2026, 3, 1, 10, 0, 0)


def make_event(toilet_id, status):
    return ParsedSensorEvent(toilet_id=toilet_id, sensor_status=status)


class TestSensorService:

    @pytest.mark.asyncio
    async def test_occupied_without_payment(self, db, toilet):
        result = await handle_sensor_event(make_event(toilet.id, "occupied"), db, now=T0)
        assert result.is_occupied is True
        assert result.occupied_since == T0
        assert result.status == "occupied"
        assert result.is_paid is False
        assert result.revision == 1

    @pytest.mark.asyncio
    async def test_available_resets_state(self, db, toilet):
        await handle_sensor_event(make_event(toilet.id, "occupied"), db, now=T0)
        result = await handle_sensor_event(make_event(toilet.id, "available"), db, now=T0 + timedelta(minutes=3))
        assert result.is_occupied is False
        assert result.occupied_since is None
        assert result.status == "available"
        assert result.is_paid is False

    @pytest.mark.asyncio
    async def test_repeated_occupied_is_noop(self, db, toilet):
        await handle_sensor_event(make_event(toilet.id, "occupied"), db, now=T0)
        result = await handle_sensor_event(make_event(toilet.id, "occupied"), db, now=T0 + timedelta(minutes=5))
        assert result.occupied_since == T0
        assert result.revision == 1

    @pytest.mark.asyncio
    async def test_maintenance_status_kept(self, db, toilet):
        edit_toilet(db, toilet.id, {"status": "maintenance"})
        result = await handle_sensor_event(make_event(toilet.id, "occupied"), db, now=T0)
        assert result.status == "maintenance"
        assert result.is_occupied is True

    @pytest.mark.asyncio
    async def test_available_closes_unpaid_session(self, db, toilet):
        db.add(AccessLog(toilet_id=toilet.id, entry_time=T0, created_at=T0))
        db.commit()

        await handle_sensor_event(make_event(toilet.id, "occupied"), db, now=T0)
        await handle_sensor_event(make_event(toilet.id, "available"), db, now=T0 + timedelta(minutes=20))

        log = db.query(AccessLog).filter(AccessLog.toilet_id == toilet.id).one()
        assert log.exit_time == T0 + timedelta(minutes=20)
        assert log.duration_minutes == 20
        assert log.security_alert is True
        assert "20 min" in log.alert_reason

    @pytest.mark.asyncio
    async def test_unknown_toilet(self, db):
        with pytest.raises(ToiletNotFoundError):
            await handle_sensor_event(make_event("missing", "occupied"), db, now=T0)
