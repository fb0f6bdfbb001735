from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from gymflow.core.exceptions import ValidationError
from gymflow.staff.schemas.templates import ClassType


class ClassCreate(BaseModel):
    """Разовое занятие (без генерации по расписанию)"""

    name: str = Field(..., min_length=1, max_length=100)
    template_id: Optional[int] = Field(None, gt=0)
    class_type: ClassType = "group"
    start_time: datetime
    duration_minutes: int = Field(60, ge=15, le=480)
    capacity: Optional[int] = Field(None, ge=1)
    location: Optional[str] = Field(None, max_length=255)
    coach_id: Optional[int] = Field(None, gt=0)
    color: str = Field("#3b82f6", pattern=r"^#[0-9a-fA-F]{6}$")
    requires_subscription: bool = True
    drop_in_price: Optional[Decimal] = Field(None, ge=0)

    @field_validator("start_time")
    @classmethod
    def validate_naive(cls, v):
        if v.tzinfo is not None:
            raise ValidationError(
                "start_time must be a local time without timezone offset"
            )
        return v


class ClassRead(BaseModel):
    id: int
    org_id: int
    template_id: Optional[int] = None
    name: str
    class_type: str
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    capacity: Optional[int] = None
    location: Optional[str] = None
    coach_id: Optional[int] = None
    requires_subscription: bool
    drop_in_price: Optional[Decimal] = None
    status: str
    cancelled_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ClassDetail(ClassRead):
    """Занятие со счетчиками бронирований"""

    confirmed_count: int = 0
    waitlist_count: int = 0
    spots_left: Optional[int] = None


class ClassCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class ClassCancelResponse(BaseModel):
    class_id: int
    cancelled_bookings: int
    refunded_sessions: int


class PlanningStats(BaseModel):
    period_start: date
    period_end: date
    total_classes: int
    scheduled_classes: int
    cancelled_classes: int
    total_participants: int
    average_occupancy: int = Field(..., description="Percent, classes with capacity only")
