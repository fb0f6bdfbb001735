from datetime import date, datetime, time
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from gymflow.core.exceptions import NotFoundError, ValidationError
from gymflow.staff.crud.templates import deactivate_template, get_template, list_templates
from gymflow.staff.models import ScheduledClass
from gymflow.staff.schemas.recurrence import (
    ClassOverrides,
    RecurrenceSpec,
    RecurringClassesRequest,
)
from gymflow.staff.services import class_instantiator
from gymflow.staff.services.class_instantiator import ClassInstantiator
from gymflow.staff.services.recurring_generator import RecurringClassGenerator
from tests.conftest import ORG_ID


async def count_classes(db) -> int:
    result = await db.execute(select(func.count()).select_from(ScheduledClass))
    return result.scalar()


def weekly_request(template_id: int, **overrides) -> RecurringClassesRequest:
    recurrence = {
        "pattern": "weekly",
        "days_of_week": [1, 3],
        "start_date": date(2027, 3, 1),
        "end_date": date(2027, 3, 14),
        "time_of_day": time(7, 0),
    }
    recurrence.update(overrides.pop("recurrence", {}))
    return RecurringClassesRequest(
        template_id=template_id, recurrence=RecurrenceSpec(**recurrence), **overrides
    )


@pytest.mark.asyncio
async def test_instantiate_copies_template_defaults(db, make_template):
    template = await make_template(capacity=12, drop_in_price=Decimal("15.00"))
    start_times = [datetime(2027, 3, 1, 7, 0), datetime(2027, 3, 3, 7, 0)]

    report = await ClassInstantiator(db).instantiate(template, start_times)

    assert len(report.created) == 2
    assert report.skipped == []
    assert report.failed == []

    created = report.created[0]
    assert created.template_id == template.id
    assert created.org_id == ORG_ID
    assert created.name == "Morning Yoga"
    assert created.capacity == 12
    assert created.location == "Studio A"
    assert created.status == "scheduled"
    assert created.end_time == datetime(2027, 3, 1, 8, 0)
    assert await count_classes(db) == 2


@pytest.mark.asyncio
async def test_instantiate_applies_overrides(db, make_template):
    template = await make_template(capacity=12)
    overrides = ClassOverrides(
        location="Rooftop", coach_id=42, capacity=6, drop_in_price=Decimal("9.50")
    )

    report = await ClassInstantiator(db).instantiate(
        template, [datetime(2027, 3, 1, 7, 0)], overrides
    )

    created = report.created[0]
    assert created.location == "Rooftop"
    assert created.coach_id == 42
    assert created.capacity == 6
    assert created.drop_in_price == Decimal("9.50")


@pytest.mark.asyncio
async def test_instantiate_skips_existing_start_times(db, make_template, make_class):
    template = await make_template()
    taken = datetime(2027, 3, 1, 7, 0)
    await make_class(start_time=taken)

    report = await ClassInstantiator(db).instantiate(
        template, [taken, datetime(2027, 3, 3, 7, 0)]
    )

    assert report.skipped == [taken]
    assert len(report.created) == 1
    assert await count_classes(db) == 2


@pytest.mark.asyncio
async def test_cancelled_class_does_not_block_start_time(db, make_template, make_class):
    template = await make_template()
    start_time = datetime(2027, 3, 1, 7, 0)
    await make_class(start_time=start_time, status="cancelled")

    report = await ClassInstantiator(db).instantiate(template, [start_time])

    assert len(report.created) == 1
    assert report.skipped == []


@pytest.mark.asyncio
async def test_duplicates_within_batch_are_skipped(db, make_template):
    template = await make_template()
    start_time = datetime(2027, 3, 1, 7, 0)

    report = await ClassInstantiator(db).instantiate(template, [start_time, start_time])

    assert len(report.created) == 1
    assert report.skipped == [start_time]


@pytest.mark.asyncio
async def test_other_organization_does_not_block(db, make_template, make_class):
    template = await make_template()
    start_time = datetime(2027, 3, 1, 7, 0)
    await make_class(org_id=ORG_ID + 1, start_time=start_time)

    report = await ClassInstantiator(db).instantiate(template, [start_time])

    assert len(report.created) == 1


@pytest.mark.asyncio
async def test_failed_item_does_not_roll_back_batch(db, make_template, monkeypatch):
    template = await make_template()
    start_times = [
        datetime(2027, 3, 1, 7, 0),
        datetime(2027, 3, 2, 7, 0),
        datetime(2027, 3, 3, 7, 0),
    ]
    original_create_class = class_instantiator.create_class

    async def flaky_create_class(session, data):
        if data["start_time"] == start_times[1]:
            raise SQLAlchemyError("disk I/O error")
        return await original_create_class(session, data)

    monkeypatch.setattr(class_instantiator, "create_class", flaky_create_class)

    report = await ClassInstantiator(db).instantiate(template, start_times)

    assert [c.start_time for c in report.created] == [start_times[0], start_times[2]]
    assert len(report.failed) == 1
    assert report.failed[0].start_time == start_times[1]
    assert "disk I/O error" in report.failed[0].error
    assert await count_classes(db) == 2


@pytest.mark.asyncio
async def test_failed_duplicate_lookup_is_reported_per_item(
    db, make_template, monkeypatch
):
    template = await make_template()
    start_times = [
        datetime(2027, 3, 1, 7, 0),
        datetime(2027, 3, 2, 7, 0),
        datetime(2027, 3, 3, 7, 0),
    ]
    original_find_class_at = class_instantiator.find_class_at

    async def flaky_find_class_at(session, org_id, start_time):
        if start_time == start_times[1]:
            raise SQLAlchemyError("canceling statement due to statement timeout")
        return await original_find_class_at(session, org_id, start_time)

    monkeypatch.setattr(class_instantiator, "find_class_at", flaky_find_class_at)

    report = await ClassInstantiator(db).instantiate(template, start_times)

    assert [c.start_time for c in report.created] == [start_times[0], start_times[2]]
    assert report.skipped == []
    assert [f.start_time for f in report.failed] == [start_times[1]]
    assert "statement timeout" in report.failed[0].error
    assert await count_classes(db) == 2


@pytest.mark.asyncio
async def test_generate_recurring_classes(db, make_template):
    template = await make_template()

    response = await RecurringClassGenerator(db).generate_recurring_classes(
        ORG_ID, weekly_request(template.id)
    )

    assert response.template_id == template.id
    assert response.message == "4 classes created"
    assert [c.start_time for c in response.created] == [
        datetime(2027, 3, 1, 7, 0),
        datetime(2027, 3, 3, 7, 0),
        datetime(2027, 3, 8, 7, 0),
        datetime(2027, 3, 10, 7, 0),
    ]


@pytest.mark.asyncio
async def test_regeneration_skips_everything(db, make_template):
    template = await make_template()
    generator = RecurringClassGenerator(db)

    await generator.generate_recurring_classes(ORG_ID, weekly_request(template.id))
    second = await generator.generate_recurring_classes(
        ORG_ID, weekly_request(template.id)
    )

    assert second.created == []
    assert len(second.skipped) == 4
    assert await count_classes(db) == 4


@pytest.mark.asyncio
async def test_generate_without_matching_dates(db, make_template):
    template = await make_template()
    # 2027-03-02 is a Tuesday; only Sundays requested
    request = weekly_request(
        template.id,
        recurrence={
            "days_of_week": [0],
            "start_date": date(2027, 3, 2),
            "end_date": date(2027, 3, 4),
        },
    )

    with pytest.raises(ValidationError):
        await RecurringClassGenerator(db).generate_recurring_classes(ORG_ID, request)

    assert await count_classes(db) == 0


@pytest.mark.asyncio
async def test_generate_over_limit_creates_nothing(db, make_template):
    template = await make_template()
    request = weekly_request(
        template.id,
        recurrence={
            "pattern": "daily",
            "days_of_week": [],
            "start_date": date(2027, 1, 1),
            "end_date": date(2027, 12, 31),
        },
    )

    with pytest.raises(ValidationError) as exc_info:
        await RecurringClassGenerator(db).generate_recurring_classes(ORG_ID, request)

    assert exc_info.value.details["count"] == 365
    assert await count_classes(db) == 0


@pytest.mark.asyncio
async def test_generate_from_other_organization_template(db, make_template):
    template = await make_template(org_id=ORG_ID + 1)

    with pytest.raises(NotFoundError):
        await RecurringClassGenerator(db).generate_recurring_classes(
            ORG_ID, weekly_request(template.id)
        )


@pytest.mark.asyncio
async def test_deactivated_template_is_hidden(db, make_template):
    template = await make_template()
    other = await make_template(name="Pilates")

    await deactivate_template(db, template.id, ORG_ID)

    assert [t.id for t in await list_templates(db, ORG_ID)] == [other.id]
    with pytest.raises(NotFoundError):
        await get_template(db, template.id)
