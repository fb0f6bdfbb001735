from gymflow.core.database import Base
from .subscriptions import Subscription, SubscriptionStatus
from .bookings import Booking, BookingStatus, ACTIVE_BOOKING_STATUSES

__all__ = [
    "Base",
    "Subscription",
    "SubscriptionStatus",
    "Booking",
    "BookingStatus",
    "ACTIVE_BOOKING_STATUSES",
]
