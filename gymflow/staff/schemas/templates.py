from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from pydantic import BaseModel, Field, ConfigDict

ClassType = Literal["group", "private", "open_gym", "event", "workshop"]


class ClassTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    class_type: ClassType = "group"
    duration_minutes: int = Field(60, ge=15, le=480)
    capacity: Optional[int] = Field(None, ge=1)
    location: Optional[str] = Field(None, max_length=255)
    color: str = Field("#3b82f6", pattern=r"^#[0-9a-fA-F]{6}$")
    requires_subscription: bool = True
    drop_in_price: Optional[Decimal] = Field(None, ge=0)


class ClassTemplateRead(BaseModel):
    id: int
    org_id: int
    name: str
    description: Optional[str] = None
    class_type: str
    duration_minutes: int
    capacity: Optional[int] = None
    location: Optional[str] = None
    color: str
    requires_subscription: bool
    drop_in_price: Optional[Decimal] = None
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
