from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..models import Booking
from ..core.database import get_db

router = APIRouter(prefix="/bookings", tags=["bookings"])


class InvoiceState(BaseModel):
    booking_id: str
    invoice_status: Optional[str] = None
    invoice_number: Optional[str] = None
    invoice_url: Optional[str] = None
    invoice_attempts: int = 0
    invoice_last_error: Optional[str] = None


def _state(b: Booking) -> InvoiceState:
    return InvoiceState(
        booking_id=b.id,
        invoice_status=b.invoice_status,
        invoice_number=b.invoice_number,
        invoice_url=b.invoice_url,
        invoice_attempts=b.invoice_attempts or 0,
        invoice_last_error=b.invoice_last_error,
    )


def _get_or_404(db: Session, booking_id: str) -> Booking:
    b = db.query(Booking).filter(Booking.id == booking_id).first()
    if not b:
        raise HTTPException(status_code=404, detail="Booking not found")
    return b


@router.post("/{booking_id}/invoice", response_model=InvoiceState, status_code=202)
def request_invoice(booking_id: str, db: Session = Depends(get_db)):
    """Flag the booking so the invoice worker picks it up on its next poll."""
    b = _get_or_404(db, booking_id)
    b.invoice_status = "pending"
    b.invoice_attempts = 0
    b.invoice_last_error = None
    b.invoice_claimed_by = None
    b.invoice_claimed_at = None
    db.commit()
    db.refresh(b)
    return _state(b)


@router.get("/{booking_id}/invoice", response_model=InvoiceState)
def invoice_state(booking_id: str, db: Session = Depends(get_db)):
    return _state(_get_or_404(db, booking_id))
