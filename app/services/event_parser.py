# app/services/event_parser.py
"""
Parses webhook payloads (sensor-update, payment-webhook) into typed events.
Raises ValidationError on missing or malformed fields, before anything is written.
"""

from dataclasses import dataclass
from typing import Any

from app.errors import ValidationError
from app.utils.logger import get_logger

logger = get_logger(__name__)

SENSOR_STATUSES = ("occupied", "available")


@dataclass
class ParsedSensorEvent:
    toilet_id: str
    sensor_status: str       # occupied | available

    @property
    def occupied(self) -> bool:
        return self.sensor_status == "occupied"


@dataclass
class ParsedPaymentEvent:
    toilet_id: str
    amount: Any              # validated against the tariff by toilet_state
    payment_method: str      # momo | rfid_card
    payment_reference: str
    source: str = "webhook"  # webhook | admin

    @property
    def exact_amount(self) -> bool:
        """Automated confirmations must match the tariff; the admin form only a minimum."""
        return self.source == "webhook"


def _require_object(data) -> dict:
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _id(value) -> str:
    return value.strip() if isinstance(value, str) else str(value)


def parse_sensor_payload(data) -> ParsedSensorEvent:
    data = _require_object(data)
    toilet_id = data.get("toilet_id")
    sensor_status = data.get("sensor_status")

    if not toilet_id or not sensor_status:
        raise ValidationError("toilet_id and sensor_status are required")
    if sensor_status not in SENSOR_STATUSES:
        raise ValidationError('sensor_status must be "occupied" or "available"')

    return ParsedSensorEvent(toilet_id=_id(toilet_id), sensor_status=sensor_status)


def parse_payment_payload(data, source: str = "webhook") -> ParsedPaymentEvent:
    data = _require_object(data)
    toilet_id = data.get("toilet_id")
    amount = data.get("amount")
    method = data.get("payment_method")
    reference = data.get("payment_reference")

    if not toilet_id or not amount or not method or not reference:
        raise ValidationError("toilet_id, amount, payment_method, and payment_reference are required")
    if not isinstance(reference, str):
        raise ValidationError("payment_reference must be a string")

    return ParsedPaymentEvent(
        toilet_id=_id(toilet_id),
        amount=amount,
        payment_method=method,
        payment_reference=reference.strip(),
        source=source,
    )
