"""Class Template CRUD - Template store used by recurring generation"""
from typing import List, Optional
from sqlalchemy import and_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymflow.core.database import db_operation
from gymflow.core.exceptions import NotFoundError
from gymflow.core.logging_utils import log_business_event
from gymflow.staff.models.class_templates import ClassTemplate
from gymflow.staff.schemas.templates import ClassTemplateCreate


@db_operation
async def get_template(
    session: AsyncSession, template_id: int, org_id: Optional[int] = None
) -> ClassTemplate:
    """Get an active template, scoped to an organization when given"""
    query = select(ClassTemplate).where(
        and_(ClassTemplate.id == template_id, ClassTemplate.is_active.is_(True))
    )
    if org_id is not None:
        query = query.where(ClassTemplate.org_id == org_id)

    result = await session.execute(query)
    template = result.scalar_one_or_none()

    if not template:
        raise NotFoundError("Class template", str(template_id))

    return template


@db_operation
async def list_templates(session: AsyncSession, org_id: int) -> List[ClassTemplate]:
    result = await session.execute(
        select(ClassTemplate)
        .where(
            and_(ClassTemplate.org_id == org_id, ClassTemplate.is_active.is_(True))
        )
        .order_by(ClassTemplate.name.asc())
    )
    return result.scalars().all()


@db_operation
async def create_template(
    session: AsyncSession, org_id: int, template_data: ClassTemplateCreate
) -> ClassTemplate:
    template = ClassTemplate(org_id=org_id, **template_data.model_dump())
    session.add(template)
    await session.commit()
    await session.refresh(template)

    log_business_event(
        "class_template_created",
        "class_template",
        template.id,
        {"org_id": org_id, "name": template.name},
    )

    return template


@db_operation
async def deactivate_template(
    session: AsyncSession, template_id: int, org_id: int
) -> ClassTemplate:
    """
    Soft delete: classes already generated keep their template reference.
    """
    template = await get_template(session, template_id, org_id)
    template.is_active = False
    await session.commit()
    return template
