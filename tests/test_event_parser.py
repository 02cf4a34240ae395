# tests/test_event_parser.py
"""Unit tests for the webhook payload parser."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from app.errors import ValidationError
from app.services.event_parser import parse_payment_payload, parse_sensor_payload


class TestSensorPayload:

    def test_occupied(self):
        event = parse_sensor_payload({"toilet_id": "t-1", "sensor_status": "occupied"})
        assert event.toilet_id == "t-1"
        assert event.occupied is True

    def test_available(self):
        event = parse_sensor_payload({"toilet_id": " t-1 ", "sensor_status": "available"})
        assert event.toilet_id == "t-1"
        assert event.occupied is False

    @pytest.mark.parametrize("payload", [
        {"sensor_status": "occupied"},
        {"toilet_id": "t-1"},
        {"toilet_id": "", "sensor_status": "occupied"},
    ])
    def test_missing_fields(self, payload):
        with pytest.raises(ValidationError) as exc:
            parse_sensor_payload(payload)
        assert exc.value.message == "toilet_id and sensor_status are required"

    def test_unknown_status(self):
        with pytest.raises(ValidationError) as exc:
            parse_sensor_payload({"toilet_id": "t-1", "sensor_status": "busy"})
        assert "occupied" in exc.value.message

    @pytest.mark.parametrize("payload", [None, [], "occupied", 42])
    def test_non_object_body(self, payload):
        with pytest.raises(ValidationError) as exc:
            parse_sensor_payload(payload)
        assert exc.value.message == "Request body must be a JSON object"


class TestPaymentPayload:

    def test_webhook_payment(self):
        event = parse_payment_payload({
            "toilet_id": "t-1", "amount": 200,
            "payment_method": "momo", "payment_reference": " MOMO-123 ",
        })
        assert event.amount == 200
        assert event.payment_reference == "MOMO-123"
        assert event.source == "webhook"
        assert event.exact_amount is True

    def test_admin_payment_uses_minimum_rule(self):
        event = parse_payment_payload({
            "toilet_id": "t-1", "amount": 500,
            "payment_method": "rfid_card", "payment_reference": "CARD-9",
        }, source="admin")
        assert event.exact_amount is False

    @pytest.mark.parametrize("missing", ["toilet_id", "amount", "payment_method", "payment_reference"])
    def test_missing_field(self, missing):
        payload = {"toilet_id": "t-1", "amount": 200, "payment_method": "momo", "payment_reference": "TX1"}
        del payload[missing]
        with pytest.raises(ValidationError) as exc:
            parse_payment_payload(payload)
        assert "are required" in exc.value.message

    def test_numeric_reference_rejected(self):
        with pytest.raises(ValidationError):
            parse_payment_payload({"toilet_id": "t-1", "amount": 200,
                                   "payment_method": "momo", "payment_reference": 12345})
