from sqlalchemy import Column, DateTime, String, Text

from ..core.database import Base, utcnow
from .notification import new_id


class SiteSettings(Base):
    """Singleton row holding business details shown on the site and invoices."""

    __tablename__ = "site_settings"

    id = Column(String(36), primary_key=True, default=new_id)
    hero_title = Column(String, nullable=True)
    hero_subtitle = Column(String, nullable=True)
    about_text = Column(Text, nullable=True)
    address = Column(String, nullable=True)
    phone_number = Column(String, nullable=True)
    whatsapp_number = Column(String, nullable=True)
    contact_email = Column(String, nullable=True)
    google_maps_embed = Column(Text, nullable=True)

    bank_name = Column(String, nullable=True)
    bank_account = Column(String, nullable=True)
    ifsc = Column(String, nullable=True)
    branch = Column(String, nullable=True)
    logo_path = Column(String, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
