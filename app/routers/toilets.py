# app/routers/toilets.py
"""Admin dashboard — toilet CRUD, manual overrides and the manual payment form."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.payment import ManualPaymentIn, PaymentOut
from app.schemas.toilet import DoorToggle, ToiletCreate, ToiletOut, ToiletUpdate
from app.services import toilet_service
from app.services.event_parser import parse_payment_payload
from app.services.payment_service import confirm_payment
from app.services.toilet_state import compute_occupancy_alert, occupied_minutes
from app.services.toilet_store import get_toilet

router = APIRouter()


def _out(toilet, now: Optional[datetime] = None) -> ToiletOut:
    """Attach the derived duration/overstay fields."""
    now = now or datetime.utcnow()
    return ToiletOut.model_validate(toilet).model_copy(update={
        "occupied_minutes": occupied_minutes(toilet, now),
        "overstay": compute_occupancy_alert(toilet, now) is not None,
    })


@router.get("/toilets", response_model=list[ToiletOut], summary="List toilets with live state")
def list_toilets(db: Session = Depends(get_db)):
    now = datetime.utcnow()
    return [_out(t, now) for t in toilet_service.list_toilets(db)]


@router.post("/toilets", response_model=ToiletOut, status_code=201, summary="Add a toilet")
def create_toilet(body: ToiletCreate, db: Session = Depends(get_db)):
    toilet = toilet_service.create_toilet(
        db, name=body.name, location=body.location,
        status=body.status, manual_open_enabled=body.manual_open_enabled,
    )
    return _out(toilet)


@router.get("/toilets/{toilet_id}", response_model=ToiletOut)
def get_toilet_detail(toilet_id: str, db: Session = Depends(get_db)):
    return _out(get_toilet(db, toilet_id))


@router.patch("/toilets/{toilet_id}", response_model=ToiletOut, summary="Edit a toilet")
def edit_toilet(toilet_id: str, body: ToiletUpdate, db: Session = Depends(get_db)):
    """
    Applies only the fields sent. Pass expected_revision (the revision the form
    was loaded at) to get a 409 instead of overwriting a newer change.
    """
    fields = body.model_dump(exclude_unset=True)
    expected_revision = fields.pop("expected_revision", None)
    toilet = toilet_service.edit_toilet(db, toilet_id, fields, expected_revision)
    return _out(toilet)


@router.delete("/toilets/{toilet_id}", summary="Remove a toilet")
def delete_toilet(toilet_id: str, db: Session = Depends(get_db)):
    toilet_service.delete_toilet(db, toilet_id)
    return {"id": toilet_id, "status": "deleted"}


@router.post("/toilets/{toilet_id}/manual-open", response_model=ToiletOut, summary="Manually open the door")
def manual_open(toilet_id: str, expected_revision: Optional[int] = None, db: Session = Depends(get_db)):
    return _out(toilet_service.manual_open(db, toilet_id, expected_revision))


@router.post("/toilets/{toilet_id}/door", response_model=ToiletOut, summary="Open or close the door")
def toggle_door(toilet_id: str, body: DoorToggle, db: Session = Depends(get_db)):
    return _out(toilet_service.toggle_door(db, toilet_id, body.open, body.expected_revision))


@router.post("/toilets/{toilet_id}/payments", response_model=PaymentOut, summary="Record a manual payment")
async def record_manual_payment(toilet_id: str, body: ManualPaymentIn, db: Session = Depends(get_db)):
    """Admin form: enforces the minimum amount rather than the exact tariff."""
    event = parse_payment_payload({"toilet_id": toilet_id, **body.model_dump()}, source="admin")
    result = await confirm_payment(event, db)
    return result.payment
