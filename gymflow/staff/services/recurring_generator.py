from sqlalchemy.ext.asyncio import AsyncSession

from gymflow.core.exceptions import ValidationError
from gymflow.core.logging_utils import log_business_event
from gymflow.staff.crud.templates import get_template
from gymflow.staff.schemas.classes import ClassRead
from gymflow.staff.schemas.recurrence import (
    RecurrencePreviewResponse,
    RecurrenceSpec,
    RecurringClassesRequest,
    RecurringClassesResponse,
)
from gymflow.staff.services.class_instantiator import ClassInstantiator
from gymflow.staff.services.recurrence import expand


class RecurringClassGenerator:
    """Генерация повторяющихся занятий: шаблон -> даты -> занятия"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def preview(self, recurrence: RecurrenceSpec) -> RecurrencePreviewResponse:
        """Start times the recurrence would produce; nothing is written"""
        start_times = expand(recurrence)
        return RecurrencePreviewResponse(count=len(start_times), start_times=start_times)

    async def generate_recurring_classes(
        self, org_id: int, request: RecurringClassesRequest
    ) -> RecurringClassesResponse:
        template = await get_template(self.session, request.template_id, org_id)

        start_times = expand(request.recurrence)
        if not start_times:
            raise ValidationError(
                "No dates match the recurrence pattern",
                {"pattern": request.recurrence.pattern.value},
            )

        report = await ClassInstantiator(self.session).instantiate(
            template, start_times, request.overrides
        )

        log_business_event(
            "recurring_classes_generated",
            "class_template",
            template.id,
            {
                "org_id": org_id,
                "pattern": request.recurrence.pattern.value,
                "created": len(report.created),
                "skipped": len(report.skipped),
                "failed": len(report.failed),
            },
        )

        return RecurringClassesResponse(
            message=f"{len(report.created)} classes created",
            template_id=template.id,
            created=[ClassRead.model_validate(c) for c in report.created],
            skipped=report.skipped,
            failed=report.failed,
        )
