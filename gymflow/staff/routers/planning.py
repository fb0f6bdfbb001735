from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Request, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from gymflow.core.database import get_session
from gymflow.core.dependencies import get_current_org_id
from gymflow.core.limits import limiter
from gymflow.staff.crud.classes import (
    create_ad_hoc_class,
    get_class_detail,
    get_planning_stats,
)
from gymflow.staff.crud.templates import (
    create_template,
    deactivate_template,
    list_templates,
)
from gymflow.staff.schemas.classes import (
    ClassCancel,
    ClassCancelResponse,
    ClassCreate,
    ClassDetail,
    ClassRead,
    PlanningStats,
)
from gymflow.staff.schemas.recurrence import (
    RecurrencePreviewResponse,
    RecurrenceSpec,
    RecurringClassesRequest,
    RecurringClassesResponse,
)
from gymflow.staff.schemas.templates import ClassTemplateCreate, ClassTemplateRead
from gymflow.staff.services.class_cancellation import ClassCancellationService
from gymflow.staff.services.recurring_generator import RecurringClassGenerator

router = APIRouter(prefix="/planning", tags=["Planning"])


@router.get("/templates", response_model=List[ClassTemplateRead])
@limiter.limit("60/minute")
async def get_templates(
    request: Request,
    org_id: int = Depends(get_current_org_id),
    db: AsyncSession = Depends(get_session),
):
    """Active class templates of the organization, by name"""
    return await list_templates(db, org_id)


@router.post(
    "/templates", response_model=ClassTemplateRead, status_code=status.HTTP_201_CREATED
)
@limiter.limit("20/minute")
async def create_new_template(
    request: Request,
    template: ClassTemplateCreate,
    org_id: int = Depends(get_current_org_id),
    db: AsyncSession = Depends(get_session),
):
    """
    Create a class template.

    - **name**: Template name shown on generated classes
    - **duration_minutes**: Class length (15-480, default 60)
    - **capacity**: Maximum confirmed participants (empty = unlimited)
    - **requires_subscription**: Members need an active subscription to book
    - **drop_in_price**: Price for members booking without a subscription
    """
    return await create_template(db, org_id, template)


@router.delete("/templates/{template_id}", response_model=ClassTemplateRead)
@limiter.limit("20/minute")
async def delete_template(
    request: Request,
    template_id: int = Path(..., gt=0),
    org_id: int = Depends(get_current_org_id),
    db: AsyncSession = Depends(get_session),
):
    """Deactivate a template. Classes already generated from it are kept."""
    return await deactivate_template(db, template_id, org_id)


@router.post("/recurring/preview", response_model=RecurrencePreviewResponse)
@limiter.limit("60/minute")
async def preview_recurring_classes(
    request: Request,
    recurrence: RecurrenceSpec,
    org_id: int = Depends(get_current_org_id),
    db: AsyncSession = Depends(get_session),
):
    """Start times a recurrence would produce. Nothing is created."""
    return RecurringClassGenerator(db).preview(recurrence)


@router.post(
    "/recurring/generate",
    response_model=RecurringClassesResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("10/minute")
async def generate_recurring_classes(
    request: Request,
    payload: RecurringClassesRequest,
    org_id: int = Depends(get_current_org_id),
    db: AsyncSession = Depends(get_session),
):
    """
    Generate classes from a template and a recurrence rule.

    - **pattern**: daily, weekly, biweekly or monthly
    - **days_of_week**: 0 = Sunday ... 6 = Saturday (weekly and biweekly)
    - **start_date** / **end_date**: Inclusive period
    - **time_of_day**: Local start time
    - **exclude_dates**: Dates to leave out (holidays)
    - **overrides**: location, coach_id, capacity, drop_in_price

    At most 100 classes per request. Start times already taken by a class
    are reported as skipped; failed items do not affect the others.
    """
    return await RecurringClassGenerator(db).generate_recurring_classes(org_id, payload)


@router.post("/classes", response_model=ClassRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def create_single_class(
    request: Request,
    class_data: ClassCreate,
    org_id: int = Depends(get_current_org_id),
    db: AsyncSession = Depends(get_session),
):
    """Create a one-off class, optionally linked to a template"""
    return await create_ad_hoc_class(db, org_id, class_data)


@router.get("/classes/{class_id}", response_model=ClassDetail)
@limiter.limit("120/minute")
async def get_class_by_id(
    request: Request,
    class_id: int = Path(..., gt=0),
    org_id: int = Depends(get_current_org_id),
    db: AsyncSession = Depends(get_session),
):
    """Class with confirmed and waitlist counts"""
    return await get_class_detail(db, class_id, org_id)


@router.post("/classes/{class_id}/cancel", response_model=ClassCancelResponse)
@limiter.limit("20/minute")
async def cancel_class(
    request: Request,
    payload: Optional[ClassCancel] = None,
    class_id: int = Path(..., gt=0),
    org_id: int = Depends(get_current_org_id),
    db: AsyncSession = Depends(get_session),
):
    """
    Cancel a class. All confirmed and waitlisted bookings are cancelled and
    consumed sessions are returned to the members' subscriptions.
    """
    reason = payload.reason if payload else None
    return await ClassCancellationService(db, org_id).cancel_class(class_id, reason)


@router.get("/stats", response_model=PlanningStats)
@limiter.limit("60/minute")
async def get_stats(
    request: Request,
    start_date: Optional[date] = Query(None, description="Default: today"),
    end_date: Optional[date] = Query(None, description="Default: start_date + 7 days"),
    org_id: int = Depends(get_current_org_id),
    db: AsyncSession = Depends(get_session),
):
    return await get_planning_stats(db, org_id, start_date, end_date)
