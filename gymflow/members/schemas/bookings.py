from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict

from gymflow.members.models.bookings import BookingStatus


class BookingCreate(BaseModel):
    class_id: int = Field(..., gt=0)
    member_id: int = Field(..., gt=0)
    is_drop_in: bool = False


class BookingRead(BaseModel):
    id: int
    org_id: int
    class_id: int
    member_id: int
    subscription_id: Optional[int] = None
    status: BookingStatus
    waitlist_position: Optional[int] = None
    is_drop_in: bool
    sessions_deducted: int
    created_at: datetime
    cancelled_at: Optional[datetime] = None
    cancelled_reason: Optional[str] = None
    no_show_at: Optional[datetime] = None
    checked_in_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BookingResult(BaseModel):
    """Результат запроса на бронирование"""

    status: BookingStatus
    position: Optional[int] = Field(
        None, description="Waitlist position, only when status is waitlist"
    )
    booking: BookingRead


class BookingCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class ClassBookings(BaseModel):
    """Активные бронирования занятия: сначала подтвержденные, затем очередь"""

    class_id: int
    capacity: Optional[int] = None
    confirmed: List[BookingRead]
    waitlist: List[BookingRead]


class PromotionResult(BaseModel):
    class_id: int
    promoted: Optional[BookingRead] = None


class BookingReleaseResult(BaseModel):
    """Бронирование, освободившее место, и участник, занявший его из очереди"""

    booking: BookingRead
    promoted: Optional[BookingRead] = None
