from sqlalchemy.orm import Session

from ..config import Settings
from ..models import SiteSettings


def seed_initial_data(db: Session, settings: Settings) -> None:
    """Create the singleton site settings row if the table is empty."""
    if db.query(SiteSettings).count() == 0:
        db.add(
            SiteSettings(
                hero_title=settings.invoice_company_name,
                address=settings.invoice_location,
                logo_path=settings.invoice_logo_path,
            )
        )
        db.commit()
