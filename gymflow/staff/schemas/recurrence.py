from datetime import date, time, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict

from gymflow.core.exceptions import ValidationError
from gymflow.staff.schemas.classes import ClassRead


class RecurrencePattern(str, Enum):
    daily = "daily"
    weekly = "weekly"
    biweekly = "biweekly"
    monthly = "monthly"


class RecurrenceSpec(BaseModel):
    """Правило повторения занятий"""

    pattern: RecurrencePattern
    # 0 = Sunday, 1 = Monday ... 6 = Saturday
    days_of_week: List[int] = Field(default_factory=list)
    start_date: date
    end_date: date = Field(..., description="Inclusive")
    time_of_day: time = Field(..., description="Local start time, HH:MM")
    exclude_dates: List[date] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @field_validator("days_of_week")
    @classmethod
    def validate_days_of_week(cls, v):
        for day in v:
            if day < 0 or day > 6:
                raise ValidationError(
                    "days_of_week values must be between 0 (Sunday) and 6 (Saturday)",
                    {"value": day},
                )
        return sorted(set(v))

    @model_validator(mode="after")
    def validate_spec(self):
        if self.end_date < self.start_date:
            raise ValidationError("end_date must not be before start_date")

        if (
            self.pattern in (RecurrencePattern.weekly, RecurrencePattern.biweekly)
            and not self.days_of_week
        ):
            raise ValidationError(
                f"days_of_week is required for {self.pattern.value} recurrence"
            )

        return self


class ClassOverrides(BaseModel):
    """Значения, заменяющие настройки шаблона"""

    location: Optional[str] = Field(None, max_length=255)
    coach_id: Optional[int] = Field(None, gt=0)
    capacity: Optional[int] = Field(None, ge=1)
    drop_in_price: Optional[Decimal] = Field(None, ge=0)


class RecurringClassesRequest(BaseModel):
    template_id: int = Field(..., gt=0)
    recurrence: RecurrenceSpec
    overrides: ClassOverrides = Field(default_factory=ClassOverrides)


class RecurrencePreviewResponse(BaseModel):
    count: int
    start_times: List[datetime]


class FailedInstance(BaseModel):
    start_time: datetime
    error: str


class RecurringClassesResponse(BaseModel):
    """Отчет о генерации: созданные, пропущенные и упавшие слоты"""

    message: str
    template_id: int
    created: List[ClassRead]
    skipped: List[datetime] = Field(default_factory=list)
    failed: List[FailedInstance] = Field(default_factory=list)
