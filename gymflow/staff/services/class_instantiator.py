import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gymflow.core.logging_utils import error_tracker
from gymflow.staff.crud.classes import create_class, find_class_at
from gymflow.staff.models.class_templates import ClassTemplate
from gymflow.staff.models.classes import ScheduledClass
from gymflow.staff.schemas.recurrence import ClassOverrides, FailedInstance

logger = logging.getLogger(__name__)


@dataclass
class InstantiationReport:
    created: List[ScheduledClass] = field(default_factory=list)
    skipped: List[datetime] = field(default_factory=list)
    failed: List[FailedInstance] = field(default_factory=list)


class ClassInstantiator:
    """Создает занятия из шаблона для заданных дат начала"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def instantiate(
        self,
        template: ClassTemplate,
        start_times: List[datetime],
        overrides: Optional[ClassOverrides] = None,
    ) -> InstantiationReport:
        """
        Create one class per start time.

        A start time already taken by a non-cancelled class of the same
        organization is skipped. Each class is written in its own savepoint:
        a failing item is reported and the rest of the batch is committed.
        """
        overrides = overrides or ClassOverrides()
        report = InstantiationReport()

        for start_time in start_times:
            scheduled_class = None
            try:
                async with self.session.begin_nested():
                    if not await find_class_at(
                        self.session, template.org_id, start_time
                    ):
                        scheduled_class = await create_class(
                            self.session,
                            self._class_data(template, start_time, overrides),
                        )
            except SQLAlchemyError as e:
                error = str(getattr(e, "orig", None) or e)
                logger.warning(
                    f"Failed to create class at {start_time.isoformat()}: {error}",
                    extra={"template_id": template.id, "start_time": start_time.isoformat()},
                )
                error_tracker.track_error(
                    "class_instantiation_failed",
                    error,
                    {"template_id": template.id, "start_time": start_time.isoformat()},
                )
                report.failed.append(FailedInstance(start_time=start_time, error=error))
                continue

            if scheduled_class is None:
                report.skipped.append(start_time)
            else:
                report.created.append(scheduled_class)

        await self.session.commit()

        logger.info(
            f"Instantiated template {template.id}: {len(report.created)} created, "
            f"{len(report.skipped)} skipped, {len(report.failed)} failed"
        )

        return report

    @staticmethod
    def _class_data(
        template: ClassTemplate, start_time: datetime, overrides: ClassOverrides
    ) -> Dict[str, Any]:
        return {
            "org_id": template.org_id,
            "template_id": template.id,
            "name": template.name,
            "class_type": template.class_type,
            "start_time": start_time,
            "duration_minutes": template.duration_minutes,
            "capacity": (
                overrides.capacity if overrides.capacity is not None else template.capacity
            ),
            "location": overrides.location or template.location,
            "coach_id": overrides.coach_id,
            "color": template.color,
            "requires_subscription": template.requires_subscription,
            "drop_in_price": (
                overrides.drop_in_price
                if overrides.drop_in_price is not None
                else template.drop_in_price
            ),
            "status": "scheduled",
        }
