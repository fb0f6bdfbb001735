"""Subscription CRUD - Session balance consumed by confirmed bookings"""
from datetime import date
from typing import Optional
from sqlalchemy import and_, or_, update
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymflow.core.database import db_operation
from gymflow.members.models.subscriptions import Subscription, SubscriptionStatus


@db_operation
async def get_active_subscription(
    session: AsyncSession,
    member_id: int,
    org_id: int,
    today: Optional[date] = None,
) -> Optional[Subscription]:
    """
    Active subscription of a member in the organization.

    When several are active, one with sessions left wins, soonest expiry
    first. Returns an exhausted subscription only when no other is usable,
    and None when the member has no active subscription at all.
    """
    today = today or date.today()

    result = await session.execute(
        select(Subscription)
        .where(
            and_(
                Subscription.member_id == member_id,
                Subscription.org_id == org_id,
                Subscription.status == SubscriptionStatus.active.value,
                Subscription.start_date <= today,
                or_(Subscription.end_date.is_(None), Subscription.end_date >= today),
            )
        )
        .order_by(Subscription.end_date.is_(None), Subscription.end_date.asc(), Subscription.id.asc())
    )
    subscriptions = result.scalars().all()

    for subscription in subscriptions:
        if subscription.has_sessions_available:
            return subscription

    return subscriptions[0] if subscriptions else None


@db_operation
async def adjust_sessions_used(
    session: AsyncSession, subscription_id: int, delta: int
) -> bool:
    """
    Atomically add ``delta`` to sessions_used.

    Consuming (delta > 0) only succeeds while the balance allows it and
    refunding never goes below zero, so two classes booked at the same time
    against one subscription cannot overdraw it. Returns False when the
    guard rejected the change.
    """
    conditions = [Subscription.id == subscription_id]
    if delta > 0:
        conditions.append(
            or_(
                Subscription.sessions_total.is_(None),
                Subscription.sessions_used + delta <= Subscription.sessions_total,
            )
        )
    else:
        conditions.append(Subscription.sessions_used + delta >= 0)

    result = await session.execute(
        update(Subscription)
        .where(and_(*conditions))
        .values(sessions_used=Subscription.sessions_used + delta)
    )
    return result.rowcount == 1
