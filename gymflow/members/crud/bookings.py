"""Booking CRUD - Booking store for admission, cancellation and promotion"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import and_, case, func, update
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymflow.core.database import db_operation
from gymflow.core.exceptions import NotFoundError
from gymflow.members.models.bookings import (
    Booking,
    BookingStatus,
    ACTIVE_BOOKING_STATUSES,
)
from gymflow.staff.models.classes import ScheduledClass

_WAITLIST_ORDER = (
    Booking.waitlist_position.asc(),
    Booking.created_at.asc(),
    Booking.id.asc(),
)


@db_operation
async def get_booking(
    session: AsyncSession,
    booking_id: int,
    org_id: Optional[int] = None,
    for_update: bool = False,
) -> Booking:
    query = select(Booking).where(Booking.id == booking_id)
    if org_id is not None:
        query = query.where(Booking.org_id == org_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)

    result = await session.execute(query)
    booking = result.scalar_one_or_none()

    if not booking:
        raise NotFoundError("Booking", str(booking_id))

    return booking


@db_operation
async def get_active_booking(
    session: AsyncSession, class_id: int, member_id: int
) -> Optional[Booking]:
    """Confirmed or waitlisted booking of a member for a class"""
    result = await session.execute(
        select(Booking).where(
            and_(
                Booking.class_id == class_id,
                Booking.member_id == member_id,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            )
        )
    )
    return result.scalar_one_or_none()


@db_operation
async def insert_booking(session: AsyncSession, data: Dict[str, Any]) -> Booking:
    booking = Booking(**data)
    session.add(booking)
    await session.flush()
    await session.refresh(booking)
    return booking


@db_operation
async def list_active_bookings(session: AsyncSession, class_id: int) -> List[Booking]:
    """Confirmed bookings first (by arrival), then the waitlist by position"""
    result = await session.execute(
        select(Booking)
        .where(
            and_(
                Booking.class_id == class_id,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            )
        )
        .order_by(
            case((Booking.status == BookingStatus.confirmed.value, 0), else_=1),
            *_WAITLIST_ORDER,
        )
    )
    return result.scalars().all()


@db_operation
async def list_waitlist(session: AsyncSession, class_id: int) -> List[Booking]:
    result = await session.execute(
        select(Booking)
        .where(
            and_(
                Booking.class_id == class_id,
                Booking.status == BookingStatus.waitlist.value,
            )
        )
        .order_by(*_WAITLIST_ORDER)
    )
    return result.scalars().all()


@db_operation
async def list_member_bookings(
    session: AsyncSession,
    member_id: int,
    org_id: int,
    status: Optional[BookingStatus] = None,
    upcoming: bool = False,
) -> List[Booking]:
    """Bookings of a member, newest first; optionally by status or future classes only"""
    query = select(Booking).where(
        and_(Booking.member_id == member_id, Booking.org_id == org_id)
    )
    if status is not None:
        query = query.where(Booking.status == status.value)
    if upcoming:
        query = query.join(ScheduledClass, Booking.class_id == ScheduledClass.id).where(
            ScheduledClass.start_time >= datetime.now()
        )

    result = await session.execute(
        query.order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return result.scalars().all()


@db_operation
async def get_max_waitlist_position(session: AsyncSession, class_id: int) -> int:
    result = await session.execute(
        select(func.max(Booking.waitlist_position)).where(
            and_(
                Booking.class_id == class_id,
                Booking.status == BookingStatus.waitlist.value,
            )
        )
    )
    return result.scalar() or 0


@db_operation
async def update_booking_status(
    session: AsyncSession, booking_id: int, status: BookingStatus, **fields: Any
) -> None:
    """
    Change a booking's status. Leaving the waitlist always clears the
    position so the waitlist position index only covers real entries.
    """
    values = {"status": status.value, **fields}
    if status != BookingStatus.waitlist:
        values["waitlist_position"] = None

    await session.execute(
        update(Booking).where(Booking.id == booking_id).values(**values)
    )


@db_operation
async def update_waitlist_position(
    session: AsyncSession, booking_id: int, new_position: int
) -> None:
    await session.execute(
        update(Booking)
        .where(Booking.id == booking_id)
        .values(waitlist_position=new_position)
    )


@db_operation
async def shift_waitlist_after(
    session: AsyncSession, class_id: int, position: int
) -> int:
    """
    Close the gap left at ``position``: every later waitlist entry moves up
    by one. Rows are updated one by one in ascending order so the unique
    position index never sees two entries on the same spot.

    Returns the number of entries moved.
    """
    result = await session.execute(
        select(Booking.id, Booking.waitlist_position)
        .where(
            and_(
                Booking.class_id == class_id,
                Booking.status == BookingStatus.waitlist.value,
                Booking.waitlist_position > position,
            )
        )
        .order_by(Booking.waitlist_position.asc())
    )
    rows = result.all()

    for booking_id, current_position in rows:
        await update_waitlist_position(session, booking_id, current_position - 1)

    return len(rows)
