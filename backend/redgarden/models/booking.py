from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String, Text

from ..core.database import Base, utcnow
from .notification import new_id


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=new_id)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=True)
    facility_id = Column(String(36), ForeignKey("facilities.id"), nullable=True)

    user_name = Column(String, nullable=False)
    user_email = Column(String, nullable=True)
    user_mobile = Column(String, nullable=False)

    event_date = Column(String, nullable=True)
    start_time = Column(String, nullable=True)
    end_time = Column(String, nullable=True)
    guest_count = Column(Integer, nullable=True)
    status = Column(String, default="pending")
    notes = Column(Text, nullable=True)
    # [{"description": ..., "quantity": ..., "rate": ..., "amount": ...}]
    line_items = Column(JSON, nullable=True)
    created_by = Column(String(36), nullable=True)

    total_amount = Column(Float, nullable=True)
    gst = Column(Float, nullable=True)
    amount_paid = Column(Float, nullable=True)
    payment_status = Column(String, nullable=True)

    invoice_number = Column(String, nullable=True)
    invoice_url = Column(String, nullable=True)
    invoice_status = Column(String, nullable=True, index=True)  # NULL | pending | processing | finalized | failed
    invoice_attempts = Column(Integer, default=0)
    invoice_last_error = Column(Text, nullable=True)
    invoice_claimed_by = Column(String, nullable=True)
    invoice_claimed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
