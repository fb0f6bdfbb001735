"""
Booking admission: decides between a confirmed spot and the waitlist, and
handles everything that frees a spot again (cancellation, no-show).

All state changes for one class run under its booking guard in a single
transaction, so capacity is never exceeded and waitlist positions stay a
dense 1..n sequence.
"""

import logging
from datetime import datetime
from typing import Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession

from gymflow.core.concurrency import booking_transaction, retry_on_conflict
from gymflow.core.database import TransactionManager
from gymflow.core.exceptions import (
    AlreadyBookedError,
    BookingConflictError,
    BusinessLogicError,
    ClassCancelledError,
    NoActiveSubscriptionError,
)
from gymflow.core.logging_utils import log_business_event
from gymflow.members.crud.bookings import (
    get_active_booking,
    get_booking,
    get_max_waitlist_position,
    insert_booking,
    shift_waitlist_after,
    update_booking_status,
)
from gymflow.members.crud.subscriptions import (
    adjust_sessions_used,
    get_active_subscription,
)
from gymflow.members.models.bookings import Booking, BookingStatus
from gymflow.members.schemas.bookings import BookingRead, BookingResult
from gymflow.members.services.waitlist_promoter import WaitlistPromoter, log_promotion
from gymflow.staff.crud.classes import count_confirmed, lock_class

logger = logging.getLogger(__name__)


class BookingAdmissionController:
    def __init__(self, session: AsyncSession, org_id: Optional[int] = None):
        self.session = session
        self.org_id = org_id
        self.promoter = WaitlistPromoter(session)

    async def request_booking(
        self, class_id: int, member_id: int, is_drop_in: bool = False
    ) -> BookingResult:
        """
        Book a member into a class.

        Returns a confirmed booking while spots are left, otherwise a waitlist
        entry at the end of the queue.

        Raises:
            NotFoundError: unknown class
            AlreadyBookedError: member already confirmed or waitlisted
            ClassCancelledError: class was cancelled
            NoActiveSubscriptionError: subscription required but not usable
        """
        return await retry_on_conflict(self._admit, class_id, member_id, is_drop_in)

    async def _admit(
        self, class_id: int, member_id: int, is_drop_in: bool
    ) -> BookingResult:
        async with booking_transaction(self.session, class_id):
            scheduled_class = await lock_class(self.session, class_id, self.org_id)

            if await get_active_booking(self.session, class_id, member_id):
                raise AlreadyBookedError(class_id, member_id)

            if scheduled_class.is_cancelled:
                raise ClassCancelledError(class_id)

            subscription = None
            if not is_drop_in and scheduled_class.requires_subscription:
                subscription = await get_active_subscription(
                    self.session, member_id, scheduled_class.org_id
                )
                if subscription is None or not subscription.has_sessions_available:
                    raise NoActiveSubscriptionError(member_id)

            booking_data = {
                "org_id": scheduled_class.org_id,
                "class_id": class_id,
                "member_id": member_id,
                "subscription_id": subscription.id if subscription else None,
                "is_drop_in": is_drop_in,
            }

            confirmed = await count_confirmed(self.session, class_id)
            if scheduled_class.capacity is None or confirmed < scheduled_class.capacity:
                sessions_deducted = 0
                if subscription is not None:
                    if not await adjust_sessions_used(self.session, subscription.id, 1):
                        raise BookingConflictError(class_id, "subscription balance changed")
                    sessions_deducted = 1

                booking = await insert_booking(
                    self.session,
                    {
                        **booking_data,
                        "status": BookingStatus.confirmed.value,
                        "sessions_deducted": sessions_deducted,
                    },
                )
            else:
                position = await get_max_waitlist_position(self.session, class_id) + 1
                booking = await insert_booking(
                    self.session,
                    {
                        **booking_data,
                        "status": BookingStatus.waitlist.value,
                        "waitlist_position": position,
                    },
                )

        if booking.status == BookingStatus.confirmed.value:
            log_business_event(
                "booking_confirmed",
                "booking",
                booking.id,
                {"class_id": class_id, "member_id": member_id, "is_drop_in": is_drop_in},
            )
        else:
            log_business_event(
                "booking_waitlisted",
                "booking",
                booking.id,
                {
                    "class_id": class_id,
                    "member_id": member_id,
                    "position": booking.waitlist_position,
                },
            )

        return BookingResult(
            status=booking.status,
            position=booking.waitlist_position,
            booking=BookingRead.model_validate(booking),
        )

    async def cancel_booking(
        self, booking_id: int, reason: Optional[str] = None
    ) -> Tuple[Booking, Optional[Booking]]:
        """
        Cancel a confirmed or waitlisted booking.

        A confirmed booking gives its session back and its spot goes to the
        waitlist. A waitlisted booking leaves the queue and later entries move
        up by one.

        Returns:
            Tuple[cancelled_booking, promoted_booking_or_None]
        """
        class_id = await self._get_class_id(booking_id)
        return await retry_on_conflict(self._cancel, booking_id, class_id, reason)

    async def _cancel(
        self, booking_id: int, class_id: int, reason: Optional[str]
    ) -> Tuple[Booking, Optional[Booking]]:
        promoted = None

        async with booking_transaction(self.session, class_id):
            scheduled_class = await lock_class(self.session, class_id)
            booking = await get_booking(
                self.session, booking_id, self.org_id, for_update=True
            )
            if not booking.is_active:
                raise BusinessLogicError(
                    f"Booking cannot be cancelled in status '{booking.status}'",
                    {"booking_id": booking_id, "status": booking.status},
                )

            previous_status = booking.status
            previous_position = booking.waitlist_position
            refund = previous_status == BookingStatus.confirmed.value and (
                booking.sessions_deducted > 0 and booking.subscription_id is not None
            )

            if refund:
                await self._refund_session(booking)

            await update_booking_status(
                self.session,
                booking_id,
                BookingStatus.cancelled,
                cancelled_at=datetime.now(),
                cancelled_reason=reason,
                sessions_deducted=0,
            )

            if previous_status == BookingStatus.confirmed.value:
                promoted = await self.promoter.promote_locked(scheduled_class)
            else:
                await shift_waitlist_after(self.session, class_id, previous_position)

        log_business_event(
            "booking_cancelled",
            "booking",
            booking_id,
            {
                "class_id": class_id,
                "previous_status": previous_status,
                "session_refunded": refund,
            },
        )
        if promoted:
            log_promotion(promoted)

        return booking, promoted

    async def mark_no_show(self, booking_id: int) -> Tuple[Booking, Optional[Booking]]:
        """
        Confirmed member did not show up. The session stays consumed; the
        spot is released to the waitlist.
        """
        class_id = await self._get_class_id(booking_id)
        return await retry_on_conflict(self._no_show, booking_id, class_id)

    async def _no_show(
        self, booking_id: int, class_id: int
    ) -> Tuple[Booking, Optional[Booking]]:
        async with booking_transaction(self.session, class_id):
            scheduled_class = await lock_class(self.session, class_id)
            booking = await get_booking(
                self.session, booking_id, self.org_id, for_update=True
            )
            self._require_confirmed(booking, "marked as no-show")

            await update_booking_status(
                self.session, booking_id, BookingStatus.no_show, no_show_at=datetime.now()
            )
            promoted = await self.promoter.promote_locked(scheduled_class)

        log_business_event(
            "booking_no_show",
            "booking",
            booking_id,
            {"class_id": class_id, "member_id": booking.member_id},
        )
        if promoted:
            log_promotion(promoted)

        return booking, promoted

    async def check_in(self, booking_id: int) -> Booking:
        """Mark a confirmed booking as attended"""
        async with TransactionManager(self.session):
            booking = await get_booking(
                self.session, booking_id, self.org_id, for_update=True
            )
            self._require_confirmed(booking, "checked in")

            await update_booking_status(
                self.session,
                booking_id,
                BookingStatus.attended,
                checked_in_at=datetime.now(),
            )

        log_business_event(
            "booking_checked_in",
            "booking",
            booking_id,
            {"class_id": booking.class_id, "member_id": booking.member_id},
        )

        return booking

    async def _get_class_id(self, booking_id: int) -> int:
        booking = await get_booking(self.session, booking_id, self.org_id)
        return booking.class_id

    async def _refund_session(self, booking: Booking):
        if not await adjust_sessions_used(self.session, booking.subscription_id, -1):
            # Баланс уже нулевой: возвращать нечего
            logger.warning(
                f"Session refund skipped for booking {booking.id}",
                extra={
                    "booking_id": booking.id,
                    "subscription_id": booking.subscription_id,
                },
            )

    @staticmethod
    def _require_confirmed(booking: Booking, action: str):
        if booking.status != BookingStatus.confirmed.value:
            raise BusinessLogicError(
                f"Only confirmed bookings can be {action}",
                {"booking_id": booking.id, "status": booking.status},
            )
