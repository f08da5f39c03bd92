import uuid

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text

from ..core.database import Base, utcnow


def new_id() -> str:
    return str(uuid.uuid4())


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=new_id)
    type = Column(String, nullable=False)
    booking_id = Column(String(36), nullable=True, index=True)
    enquiry_id = Column(String(36), nullable=True, index=True)
    payload = Column(JSON, nullable=True)
    channel = Column(String, nullable=True, default="all")  # comma-separated: push,email,sms,telegram,all
    status = Column(String, default="pending", index=True)  # pending | processing | sent | failed
    attempts = Column(Integer, default=0)
    last_error = Column(Text, nullable=True)

    claimed_by = Column(String, nullable=True)
    claimed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    sent_at = Column(DateTime, nullable=True)
