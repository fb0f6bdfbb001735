"""Class CRUD - Class store for generated and ad-hoc classes"""
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Optional, Tuple
from sqlalchemy import and_, func
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymflow.core.database import db_operation
from gymflow.core.exceptions import NotFoundError
from gymflow.core.logging_utils import log_business_event
from gymflow.members.models.bookings import Booking, BookingStatus
from gymflow.staff.crud.templates import get_template
from gymflow.staff.models.classes import ScheduledClass
from gymflow.staff.schemas.classes import ClassCreate, ClassDetail, PlanningStats


@db_operation
async def get_class(
    session: AsyncSession, class_id: int, org_id: Optional[int] = None
) -> Optional[ScheduledClass]:
    query = select(ScheduledClass).where(ScheduledClass.id == class_id)
    if org_id is not None:
        query = query.where(ScheduledClass.org_id == org_id)

    result = await session.execute(query)
    return result.scalar_one_or_none()


@db_operation
async def lock_class(
    session: AsyncSession, class_id: int, org_id: Optional[int] = None
) -> ScheduledClass:
    """
    Load a class with a row lock (SELECT ... FOR UPDATE) for the rest of
    the current transaction. Raises NotFoundError for unknown classes.
    """
    query = (
        select(ScheduledClass)
        .where(ScheduledClass.id == class_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if org_id is not None:
        query = query.where(ScheduledClass.org_id == org_id)

    result = await session.execute(query)
    scheduled_class = result.scalar_one_or_none()

    if not scheduled_class:
        raise NotFoundError("Class", str(class_id))

    return scheduled_class


@db_operation
async def find_class_at(
    session: AsyncSession, org_id: int, start_time: datetime
) -> Optional[ScheduledClass]:
    """Non-cancelled class of the organization starting exactly at start_time"""
    result = await session.execute(
        select(ScheduledClass)
        .where(
            and_(
                ScheduledClass.org_id == org_id,
                ScheduledClass.start_time == start_time,
                ScheduledClass.status != "cancelled",
            )
        )
        .limit(1)
    )
    return result.scalar_one_or_none()


@db_operation
async def create_class(session: AsyncSession, data: Dict[str, Any]) -> ScheduledClass:
    """Insert a class within the current transaction (flush, no commit)"""
    scheduled_class = ScheduledClass(**data)
    session.add(scheduled_class)
    await session.flush()
    await session.refresh(scheduled_class)
    return scheduled_class


@db_operation
async def create_ad_hoc_class(
    session: AsyncSession, org_id: int, class_data: ClassCreate
) -> ScheduledClass:
    if class_data.template_id is not None:
        await get_template(session, class_data.template_id, org_id)

    scheduled_class = await create_class(
        session, {"org_id": org_id, "status": "scheduled", **class_data.model_dump()}
    )
    await session.commit()

    log_business_event(
        "class_created",
        "class",
        scheduled_class.id,
        {"org_id": org_id, "start_time": scheduled_class.start_time.isoformat()},
    )

    return scheduled_class


@db_operation
async def set_cancelled(
    session: AsyncSession, scheduled_class: ScheduledClass, reason: Optional[str] = None
) -> ScheduledClass:
    scheduled_class.status = "cancelled"
    scheduled_class.cancelled_at = datetime.now()
    scheduled_class.cancelled_reason = reason
    await session.flush()
    return scheduled_class


@db_operation
async def count_confirmed(session: AsyncSession, class_id: int) -> int:
    """Confirmed count is always derived from bookings, never stored"""
    result = await session.execute(
        select(func.count())
        .select_from(Booking)
        .where(
            and_(
                Booking.class_id == class_id,
                Booking.status == BookingStatus.confirmed.value,
            )
        )
    )
    return result.scalar() or 0


@db_operation
async def get_booking_counts(session: AsyncSession, class_id: int) -> Tuple[int, int]:
    """Returns: (confirmed_count, waitlist_count)"""
    result = await session.execute(
        select(Booking.status, func.count())
        .where(
            and_(
                Booking.class_id == class_id,
                Booking.status.in_(
                    [BookingStatus.confirmed.value, BookingStatus.waitlist.value]
                ),
            )
        )
        .group_by(Booking.status)
    )
    counts = dict(result.all())
    return (
        counts.get(BookingStatus.confirmed.value, 0),
        counts.get(BookingStatus.waitlist.value, 0),
    )


@db_operation
async def get_class_detail(
    session: AsyncSession, class_id: int, org_id: Optional[int] = None
) -> ClassDetail:
    scheduled_class = await get_class(session, class_id, org_id)
    if not scheduled_class:
        raise NotFoundError("Class", str(class_id))

    confirmed_count, waitlist_count = await get_booking_counts(session, class_id)

    spots_left = None
    if scheduled_class.capacity is not None:
        spots_left = max(scheduled_class.capacity - confirmed_count, 0)

    detail = ClassDetail.model_validate(scheduled_class)
    detail.confirmed_count = confirmed_count
    detail.waitlist_count = waitlist_count
    detail.spots_left = spots_left
    return detail


@db_operation
async def get_planning_stats(
    session: AsyncSession,
    org_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> PlanningStats:
    """Class counts and average occupancy for a period (default: next 7 days)"""
    start_date = start_date or date.today()
    end_date = end_date or start_date + timedelta(days=7)

    confirmed_subquery = (
        select(Booking.class_id, func.count().label("confirmed"))
        .where(Booking.status == BookingStatus.confirmed.value)
        .group_by(Booking.class_id)
        .subquery()
    )

    result = await session.execute(
        select(
            ScheduledClass.status,
            ScheduledClass.capacity,
            func.coalesce(confirmed_subquery.c.confirmed, 0),
        )
        .outerjoin(confirmed_subquery, confirmed_subquery.c.class_id == ScheduledClass.id)
        .where(
            and_(
                ScheduledClass.org_id == org_id,
                ScheduledClass.start_time >= datetime.combine(start_date, time.min),
                ScheduledClass.start_time <= datetime.combine(end_date, time.max),
            )
        )
    )
    rows = result.all()

    occupancies = [
        confirmed / capacity * 100
        for _, capacity, confirmed in rows
        if capacity and capacity > 0
    ]

    return PlanningStats(
        period_start=start_date,
        period_end=end_date,
        total_classes=len(rows),
        scheduled_classes=sum(1 for status, _, _ in rows if status == "scheduled"),
        cancelled_classes=sum(1 for status, _, _ in rows if status == "cancelled"),
        total_participants=sum(confirmed for _, _, confirmed in rows),
        average_occupancy=round(sum(occupancies) / len(occupancies)) if occupancies else 0,
    )
