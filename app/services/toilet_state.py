# app/services/toilet_state.py
"""
Toilet session state model.

Pure transition rules for a single toilet. Each apply_* function reads the
current toilet (ORM row or any object with the same attributes), validates the
request and returns a Transition describing the field changes. Nothing here
touches the database: toilet_store.conditional_update() writes the result.

Writers:
  - admin edit            → apply_admin_edit
  - occupancy sensor      → apply_sensor_event
  - payment confirmation  → apply_payment_confirmation
  - manual open / door    → apply_manual_open, apply_door_toggle

Derived facts (never stored on the toilet row):
  - occupied_minutes, compute_occupancy_alert
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from app.config import settings
from app.errors import ValidationError, AmountMismatchError, OverrideNotPermittedError

TOILET_STATUSES = ("available", "occupied", "maintenance")
ADMIN_EDITABLE_FIELDS = ("name", "location", "status", "manual_open_enabled")

# Field → group. The store guards and stamps revisions per group.
FIELD_GROUPS = {
    "name": "identity",
    "location": "identity",
    "status": "status",
    "is_occupied": "occupancy",
    "occupied_since": "occupancy",
    "is_paid": "payment",
    "last_payment_time": "payment",
    "manual_open_enabled": "override",
    "manual_open_suppressed": "override",
}
GROUPS = ("identity", "status", "occupancy", "payment", "override")


@dataclass
class Transition:
    changes: dict = field(default_factory=dict)
    reads: frozenset = frozenset()   # groups whose current value decided the outcome

    @property
    def groups(self) -> set:
        return {FIELD_GROUPS[name] for name in self.changes}

    @property
    def guarded_groups(self) -> set:
        return self.groups | set(self.reads)

    @property
    def is_noop(self) -> bool:
        return not self.changes

    def apply_to(self, toilet):
        """Apply the changes in memory. Used for previews and by tests."""
        for name, value in self.changes.items():
            setattr(toilet, name, value)
        return toilet


@dataclass
class OccupancyAlert:
    toilet_id: str
    occupied_since: datetime
    occupied_minutes: int
    threshold_minutes: int

    @property
    def reason(self) -> str:
        return (f"Extended occupancy: {self.occupied_minutes} min "
                f"(limit {self.threshold_minutes} min)")


def _changed(toilet, changes: dict) -> dict:
    return {k: v for k, v in changes.items() if getattr(toilet, k) != v}


def is_occupancy_consistent(toilet) -> bool:
    """occupied_since is set if and only if is_occupied."""
    return bool(toilet.is_occupied) == (toilet.occupied_since is not None)


# ── Admin ────────────────────────────────────────────────────────────────────

def apply_admin_edit(toilet, fields: dict, maintenance_clears_occupancy: Optional[bool] = None) -> Transition:
    """
    Admin edit of name/location/status/manual_open_enabled.
    Only values that actually differ from the current row become changes, so a
    form that re-submits untouched fields does not contend with other writers.
    """
    if maintenance_clears_occupancy is None:
        maintenance_clears_occupancy = settings.MAINTENANCE_CLEARS_OCCUPANCY

    unknown = set(fields) - set(ADMIN_EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields not editable: {', '.join(sorted(unknown))}")

    if "name" in fields:
        name = fields["name"]
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("name must be a non-empty string")
        fields = {**fields, "name": name.strip()}
    if "location" in fields and fields["location"] is not None and not isinstance(fields["location"], str):
        raise ValidationError("location must be a string")
    if "status" in fields and fields["status"] not in TOILET_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(TOILET_STATUSES)}")
    if "manual_open_enabled" in fields and not isinstance(fields["manual_open_enabled"], bool):
        raise ValidationError("manual_open_enabled must be a boolean")

    changes = _changed(toilet, fields)
    reads = set()

    if "manual_open_enabled" in changes:
        # An explicit admin choice replaces any payment suppression
        changes["manual_open_suppressed"] = False

    if changes.get("status") == "maintenance" and maintenance_clears_occupancy:
        reads.add("occupancy")
        if toilet.is_occupied:
            changes["is_occupied"] = False
            changes["occupied_since"] = None

    return Transition(changes, frozenset(reads))


# ── Sensor ───────────────────────────────────────────────────────────────────

def apply_sensor_event(toilet, occupied: bool, now: datetime) -> Transition:
    """
    occupied=True  → is_occupied, occupied_since=now, status=occupied. No payment check.
    occupied=False → unoccupied, unpaid, status=available. Every exit requires a new payment.
    A toilet under maintenance keeps its status; only occupancy/payment follow the sensor.
    """
    in_maintenance = toilet.status == "maintenance"

    if occupied:
        changes = {"is_occupied": True}
        # A repeated "occupied" report must not restart the overstay clock
        if not toilet.is_occupied or toilet.occupied_since is None:
            changes["occupied_since"] = now
        if not in_maintenance:
            changes["status"] = "occupied"
        if toilet.manual_open_suppressed:
            changes["manual_open_enabled"] = True
            changes["manual_open_suppressed"] = False
        reads = {"status", "occupancy", "override"}
    else:
        changes = {"is_occupied": False, "occupied_since": None, "is_paid": False}
        if not in_maintenance:
            changes["status"] = "available"
        reads = {"status"}

    return Transition(_changed(toilet, changes), frozenset(reads))


# ── Payment ──────────────────────────────────────────────────────────────────

def validate_payment(amount, method, exact: bool = True,
                     tariff: Optional[int] = None, minimum: Optional[int] = None) -> int:
    """
    Automated confirmations must pay exactly the tariff; the admin form only a minimum.
    Returns the amount as an int.
    """
    tariff = settings.TARIFF_AMOUNT if tariff is None else tariff
    minimum = settings.MANUAL_PAYMENT_MIN_AMOUNT if minimum is None else minimum
    currency = settings.CURRENCY

    is_number = isinstance(amount, (int, float)) and not isinstance(amount, bool)

    if exact:
        # "200" is not 200: any non-number is an amount mismatch, not a malformed field
        if not is_number or amount != tariff:
            received = f"{amount:g}" if is_number else amount
            raise AmountMismatchError(
                f"Payment amount must be {tariff} {currency}. Received: {received} {currency}"
            )
    elif not is_number:
        raise ValidationError("amount must be a number")
    elif amount < minimum:
        raise AmountMismatchError(f"Minimum payment amount is {minimum} {currency}")

    if amount != int(amount):
        raise ValidationError("amount must be a whole number")

    if method not in settings.PAYMENT_METHODS:
        raise ValidationError('payment_method must be "momo" or "rfid_card"')

    return int(amount)


def apply_payment_confirmation(toilet, amount, method, reference, now: datetime,
                               exact: bool = True) -> Transition:
    """
    Opens the door for a paid session: paid, available, unoccupied, and the
    manual override suppressed until the sensor reports the user inside.
    """
    validate_payment(amount, method, exact=exact)
    if not isinstance(reference, str) or not reference.strip():
        raise ValidationError("payment_reference is required")
    if toilet.status == "maintenance":
        raise ValidationError(f"Toilet '{toilet.id}' is under maintenance")

    changes = {
        "is_paid": True,
        "last_payment_time": now,
        "status": "available",
        "is_occupied": False,
        "occupied_since": None,
        "manual_open_enabled": False,
    }
    if toilet.manual_open_enabled:
        changes["manual_open_suppressed"] = True
    return Transition(changes, frozenset({"status", "override"}))


# ── Manual override ──────────────────────────────────────────────────────────

def _require_override(toilet):
    if not toilet.manual_open_enabled:
        raise OverrideNotPermittedError(f"Manual open is disabled for toilet '{toilet.id}'")


def apply_manual_open(toilet, now: datetime) -> Transition:
    """Admin override: same effect as a sensor 'available' event."""
    _require_override(toilet)
    t = apply_sensor_event(toilet, False, now)
    return Transition(t.changes, t.reads | {"override"})


def apply_door_toggle(toilet, open: bool, now: datetime) -> Transition:
    """Open → manual open. Close → like a sensor 'occupied' event, no payment needed."""
    if open:
        return apply_manual_open(toilet, now)
    _require_override(toilet)
    t = apply_sensor_event(toilet, True, now)
    return Transition(t.changes, t.reads | {"override"})


# ── Derived ──────────────────────────────────────────────────────────────────

def occupied_minutes(toilet, now: datetime) -> int:
    if not toilet.is_occupied or toilet.occupied_since is None:
        return 0
    return max(0, int((now - toilet.occupied_since).total_seconds() // 60))


def compute_occupancy_alert(toilet, now: datetime,
                            threshold_minutes: Optional[int] = None) -> Optional[OccupancyAlert]:
    """
    Overstay iff occupied and now - occupied_since > threshold.
    Strictly greater: exactly 15:00 is not an overstay, 15:01 is.
    """
    if threshold_minutes is None:
        threshold_minutes = settings.OVERSTAY_THRESHOLD_MINUTES
    if not toilet.is_occupied or toilet.occupied_since is None:
        return None
    if now - toilet.occupied_since <= timedelta(minutes=threshold_minutes):
        return None
    return OccupancyAlert(
        toilet_id=toilet.id,
        occupied_since=toilet.occupied_since,
        occupied_minutes=occupied_minutes(toilet, now),
        threshold_minutes=threshold_minutes,
    )
