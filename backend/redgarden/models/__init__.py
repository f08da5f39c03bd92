from .booking import Booking
from .catalog import Event, Facility
from .notification import Notification
from .push_subscription import PushSubscription
from .site_settings import SiteSettings


__all__ = [
    "Booking",
    "Event",
    "Facility",
    "Notification",
    "PushSubscription",
    "SiteSettings",
]
