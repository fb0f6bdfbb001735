from typing import List, Optional
from fastapi import APIRouter, Depends, Request, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from gymflow.core.database import get_session
from gymflow.core.dependencies import get_current_org_id
from gymflow.core.exceptions import NotFoundError
from gymflow.core.limits import limiter
from gymflow.members.crud.bookings import list_active_bookings, list_member_bookings
from gymflow.members.models.bookings import BookingStatus
from gymflow.members.schemas.bookings import (
    BookingCancel,
    BookingCreate,
    BookingRead,
    BookingReleaseResult,
    BookingResult,
    ClassBookings,
    PromotionResult,
)
from gymflow.members.services.booking_admission import BookingAdmissionController
from gymflow.members.services.waitlist_promoter import WaitlistPromoter
from gymflow.staff.crud.classes import get_class

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def _release_result(booking, promoted) -> BookingReleaseResult:
    return BookingReleaseResult(
        booking=BookingRead.model_validate(booking),
        promoted=BookingRead.model_validate(promoted) if promoted else None,
    )


@router.post("", response_model=BookingResult, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def create_booking(
    request: Request,
    booking: BookingCreate,
    org_id: int = Depends(get_current_org_id),
    db: AsyncSession = Depends(get_session),
):
    """
    Book a member into a class.

    - **status = confirmed**: a spot was free (one session consumed)
    - **status = waitlist**: the class is full; **position** is the place in the queue

    Rejections: 409 ALREADY_BOOKED, 409 CLASS_CANCELLED,
    402 NO_ACTIVE_SUBSCRIPTION.
    """
    controller = BookingAdmissionController(db, org_id)
    return await controller.request_booking(
        booking.class_id, booking.member_id, booking.is_drop_in
    )


@router.post("/{booking_id}/cancel", response_model=BookingReleaseResult)
@limiter.limit("30/minute")
async def cancel_booking(
    request: Request,
    payload: Optional[BookingCancel] = None,
    booking_id: int = Path(..., gt=0),
    org_id: int = Depends(get_current_org_id),
    db: AsyncSession = Depends(get_session),
):
    """Cancel a booking; a freed spot goes to the first eligible waitlist entry"""
    controller = BookingAdmissionController(db, org_id)
    booking, promoted = await controller.cancel_booking(
        booking_id, payload.reason if payload else None
    )
    return _release_result(booking, promoted)


@router.post("/{booking_id}/no-show", response_model=BookingReleaseResult)
@limiter.limit("30/minute")
async def mark_no_show(
    request: Request,
    booking_id: int = Path(..., gt=0),
    org_id: int = Depends(get_current_org_id),
    db: AsyncSession = Depends(get_session),
):
    controller = BookingAdmissionController(db, org_id)
    booking, promoted = await controller.mark_no_show(booking_id)
    return _release_result(booking, promoted)


@router.post("/{booking_id}/check-in", response_model=BookingRead)
@limiter.limit("60/minute")
async def check_in(
    request: Request,
    booking_id: int = Path(..., gt=0),
    org_id: int = Depends(get_current_org_id),
    db: AsyncSession = Depends(get_session),
):
    return await BookingAdmissionController(db, org_id).check_in(booking_id)


@router.get("/classes/{class_id}", response_model=ClassBookings)
@limiter.limit("120/minute")
async def get_class_bookings(
    request: Request,
    class_id: int = Path(..., gt=0),
    org_id: int = Depends(get_current_org_id),
    db: AsyncSession = Depends(get_session),
):
    """Confirmed participants and the waitlist in queue order"""
    scheduled_class = await get_class(db, class_id, org_id)
    if not scheduled_class:
        raise NotFoundError("Class", str(class_id))

    bookings = await list_active_bookings(db, class_id)
    return ClassBookings(
        class_id=class_id,
        capacity=scheduled_class.capacity,
        confirmed=[
            BookingRead.model_validate(b)
            for b in bookings
            if b.status == BookingStatus.confirmed.value
        ],
        waitlist=[
            BookingRead.model_validate(b)
            for b in bookings
            if b.status == BookingStatus.waitlist.value
        ],
    )


@router.get("/members/{member_id}", response_model=List[BookingRead])
@limiter.limit("120/minute")
async def get_member_bookings(
    request: Request,
    member_id: int = Path(..., gt=0),
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    upcoming: bool = Query(False, description="Only classes that have not started"),
    org_id: int = Depends(get_current_org_id),
    db: AsyncSession = Depends(get_session),
):
    """Bookings of a member, newest first"""
    bookings = await list_member_bookings(
        db, member_id, org_id, status=booking_status, upcoming=upcoming
    )
    return [BookingRead.model_validate(b) for b in bookings]


@router.post("/classes/{class_id}/promote", response_model=PromotionResult)
@limiter.limit("20/minute")
async def promote_waitlist(
    request: Request,
    class_id: int = Path(..., gt=0),
    org_id: int = Depends(get_current_org_id),
    db: AsyncSession = Depends(get_session),
):
    """Fill a free spot from the waitlist (e.g. after the capacity was raised)"""
    promoted = await WaitlistPromoter(db).promote(class_id, org_id)
    return PromotionResult(
        class_id=class_id,
        promoted=BookingRead.model_validate(promoted) if promoted else None,
    )
