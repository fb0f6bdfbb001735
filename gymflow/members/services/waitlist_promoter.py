import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from gymflow.core.concurrency import booking_transaction, retry_on_conflict
from gymflow.core.logging_utils import log_business_event
from gymflow.members.crud.bookings import (
    list_waitlist,
    shift_waitlist_after,
    update_booking_status,
)
from gymflow.members.crud.subscriptions import (
    adjust_sessions_used,
    get_active_subscription,
)
from gymflow.members.models.bookings import Booking, BookingStatus
from gymflow.staff.crud.classes import count_confirmed, lock_class
from gymflow.staff.models.classes import ScheduledClass

logger = logging.getLogger(__name__)


class WaitlistPromoter:
    """Переводит первого подходящего участника из очереди на свободное место"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def promote(
        self, class_id: int, org_id: Optional[int] = None
    ) -> Optional[Booking]:
        """Promote in a transaction of its own, under the class booking guard"""
        return await retry_on_conflict(self._promote, class_id, org_id)

    async def _promote(self, class_id: int, org_id: Optional[int]) -> Optional[Booking]:
        async with booking_transaction(self.session, class_id):
            scheduled_class = await lock_class(self.session, class_id, org_id)
            promoted = await self.promote_locked(scheduled_class)

        if promoted:
            log_promotion(promoted)
        return promoted

    async def promote_locked(self, scheduled_class: ScheduledClass) -> Optional[Booking]:
        """
        Promote one waitlist entry inside the caller's transaction.

        The caller must hold the class booking guard and the class row lock.
        Entries whose member cannot pay for the spot keep their position and
        the next entry is tried.
        """
        if scheduled_class.is_cancelled:
            return None

        if scheduled_class.capacity is not None:
            confirmed = await count_confirmed(self.session, scheduled_class.id)
            if confirmed >= scheduled_class.capacity:
                return None

        waitlist = await list_waitlist(self.session, scheduled_class.id)
        if not waitlist:
            return None

        for entry in waitlist:
            fields = {"sessions_deducted": 0}

            if not entry.is_drop_in and scheduled_class.requires_subscription:
                subscription = await get_active_subscription(
                    self.session, entry.member_id, scheduled_class.org_id
                )
                if subscription is None or not subscription.has_sessions_available:
                    logger.info(
                        f"Skipping waitlist entry {entry.id}: no sessions available",
                        extra={"booking_id": entry.id, "member_id": entry.member_id},
                    )
                    continue
                if not await adjust_sessions_used(self.session, subscription.id, 1):
                    continue
                fields = {"sessions_deducted": 1, "subscription_id": subscription.id}

            position = entry.waitlist_position
            await update_booking_status(
                self.session, entry.id, BookingStatus.confirmed, **fields
            )
            await shift_waitlist_after(self.session, scheduled_class.id, position)
            return entry

        logger.info(
            f"No promotable waitlist entry for class {scheduled_class.id}",
            extra={"class_id": scheduled_class.id, "waitlist_size": len(waitlist)},
        )
        return None


def log_promotion(booking: Booking):
    log_business_event(
        "waitlist_promoted",
        "booking",
        booking.id,
        {"class_id": booking.class_id, "member_id": booking.member_id},
    )
