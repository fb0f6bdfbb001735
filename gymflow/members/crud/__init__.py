"""Member CRUD Package"""
from .bookings import (
    get_booking,
    get_active_booking,
    insert_booking,
    list_active_bookings,
    list_waitlist,
    get_max_waitlist_position,
    update_booking_status,
    update_waitlist_position,
    shift_waitlist_after,
)

from .subscriptions import (
    get_active_subscription,
    adjust_sessions_used,
)

__all__ = [
    "get_booking",
    "get_active_booking",
    "insert_booking",
    "list_active_bookings",
    "list_waitlist",
    "get_max_waitlist_position",
    "update_booking_status",
    "update_waitlist_position",
    "shift_waitlist_after",
    "get_active_subscription",
    "adjust_sessions_used",
]
