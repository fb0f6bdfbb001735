from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from gymflow.core.concurrency import booking_transaction, retry_on_conflict
from gymflow.core.exceptions import BusinessLogicError
from gymflow.core.logging_utils import log_business_event
from gymflow.members.crud.bookings import list_active_bookings, update_booking_status
from gymflow.members.crud.subscriptions import adjust_sessions_used
from gymflow.members.models.bookings import BookingStatus
from gymflow.staff.crud.classes import lock_class, set_cancelled
from gymflow.staff.schemas.classes import ClassCancelResponse

DEFAULT_CANCEL_REASON = "Class cancelled"


class ClassCancellationService:
    """
    Отмена занятия: занятие помечается отмененным (не удаляется), все
    активные бронирования отменяются, списанные занятия возвращаются.
    Очередь не продвигается.
    """

    def __init__(self, session: AsyncSession, org_id: Optional[int] = None):
        self.session = session
        self.org_id = org_id

    async def cancel_class(
        self, class_id: int, reason: Optional[str] = None
    ) -> ClassCancelResponse:
        return await retry_on_conflict(self._cancel, class_id, reason)

    async def _cancel(self, class_id: int, reason: Optional[str]) -> ClassCancelResponse:
        cancelled_bookings = 0
        refunded_sessions = 0

        async with booking_transaction(self.session, class_id):
            scheduled_class = await lock_class(self.session, class_id, self.org_id)
            if scheduled_class.is_cancelled:
                raise BusinessLogicError(
                    "Class is already cancelled", {"class_id": class_id}
                )

            await set_cancelled(self.session, scheduled_class, reason)

            now = datetime.now()
            for booking in await list_active_bookings(self.session, class_id):
                if (
                    booking.status == BookingStatus.confirmed.value
                    and booking.sessions_deducted > 0
                    and booking.subscription_id is not None
                ):
                    if await adjust_sessions_used(
                        self.session, booking.subscription_id, -1
                    ):
                        refunded_sessions += 1

                await update_booking_status(
                    self.session,
                    booking.id,
                    BookingStatus.cancelled,
                    cancelled_at=now,
                    cancelled_reason=reason or DEFAULT_CANCEL_REASON,
                    sessions_deducted=0,
                )
                cancelled_bookings += 1

        log_business_event(
            "class_cancelled",
            "class",
            class_id,
            {
                "reason": reason,
                "cancelled_bookings": cancelled_bookings,
                "refunded_sessions": refunded_sessions,
            },
        )

        return ClassCancelResponse(
            class_id=class_id,
            cancelled_bookings=cancelled_bookings,
            refunded_sessions=refunded_sessions,
        )
