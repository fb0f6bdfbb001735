from datetime import date, datetime, time

import pytest

from gymflow.core.exceptions import ValidationError
from gymflow.staff.schemas.recurrence import RecurrenceSpec
from gymflow.staff.services.recurrence import expand, weekday_number


def make_spec(**overrides) -> RecurrenceSpec:
    data = {
        "pattern": "daily",
        "days_of_week": [],
        "start_date": date(2027, 3, 1),
        "end_date": date(2027, 3, 7),
        "time_of_day": time(18, 30),
    }
    data.update(overrides)
    return RecurrenceSpec(**data)


def test_weekday_number_starts_on_sunday():
    assert weekday_number(date(2026, 10, 18)) == 0  # Sunday
    assert weekday_number(date(2026, 10, 19)) == 1  # Monday
    assert weekday_number(date(2026, 10, 24)) == 6  # Saturday


def test_daily_covers_every_day_inclusive():
    start_times = expand(make_spec())

    assert len(start_times) == 7
    assert start_times[0] == datetime(2027, 3, 1, 18, 30)
    assert start_times[-1] == datetime(2027, 3, 7, 18, 30)


def test_single_day_range():
    start_times = expand(
        make_spec(start_date=date(2027, 3, 1), end_date=date(2027, 3, 1))
    )

    assert start_times == [datetime(2027, 3, 1, 18, 30)]


def test_weekly_selected_weekdays_only():
    # 2027-03-01 is a Monday
    start_times = expand(
        make_spec(
            pattern="weekly",
            days_of_week=[1, 3],
            start_date=date(2027, 3, 1),
            end_date=date(2027, 3, 14),
        )
    )

    assert [dt.date() for dt in start_times] == [
        date(2027, 3, 1),
        date(2027, 3, 3),
        date(2027, 3, 8),
        date(2027, 3, 10),
    ]


def test_weekly_days_are_deduplicated_and_sorted():
    spec = make_spec(pattern="weekly", days_of_week=[5, 1, 5])

    assert spec.days_of_week == [1, 5]


def test_biweekly_steps_fourteen_days_from_start():
    start_times = expand(
        make_spec(
            pattern="biweekly",
            days_of_week=[1],
            start_date=date(2026, 10, 19),
            end_date=date(2026, 11, 30),
        )
    )

    assert [dt.date() for dt in start_times] == [
        date(2026, 10, 19),
        date(2026, 11, 2),
        date(2026, 11, 16),
        date(2026, 11, 30),
    ]


def test_biweekly_only_matches_the_start_weekday():
    monday_start = make_spec(
        pattern="biweekly",
        days_of_week=[1, 3],
        start_date=date(2026, 10, 19),
        end_date=date(2026, 11, 30),
    )
    tuesday_start = make_spec(
        pattern="biweekly",
        days_of_week=[1],
        start_date=date(2026, 10, 20),
        end_date=date(2026, 11, 30),
    )

    assert len(expand(monday_start)) == 4
    assert expand(tuesday_start) == []


def test_monthly_skips_months_without_the_day():
    start_times = expand(
        make_spec(
            pattern="monthly",
            start_date=date(2027, 1, 31),
            end_date=date(2027, 6, 30),
        )
    )

    assert [dt.date() for dt in start_times] == [
        date(2027, 1, 31),
        date(2027, 3, 31),
        date(2027, 5, 31),
    ]


def test_monthly_crosses_year_boundary():
    start_times = expand(
        make_spec(
            pattern="monthly",
            start_date=date(2026, 11, 15),
            end_date=date(2027, 2, 14),
        )
    )

    assert [dt.date() for dt in start_times] == [
        date(2026, 11, 15),
        date(2026, 12, 15),
        date(2027, 1, 15),
    ]


def test_exclude_dates_are_removed():
    start_times = expand(
        make_spec(exclude_dates=[date(2027, 3, 2), date(2027, 3, 5)])
    )

    assert len(start_times) == 5
    assert datetime(2027, 3, 2, 18, 30) not in start_times


def test_expansion_is_deterministic():
    spec = make_spec(pattern="weekly", days_of_week=[0, 2, 4])

    assert expand(spec) == expand(spec)


def test_hundred_instances_allowed():
    start_times = expand(
        make_spec(start_date=date(2027, 1, 1), end_date=date(2027, 4, 10))
    )

    assert len(start_times) == 100


def test_more_than_hundred_instances_rejected():
    with pytest.raises(ValidationError) as exc_info:
        expand(make_spec(start_date=date(2027, 1, 1), end_date=date(2027, 4, 11)))

    assert exc_info.value.status_code == 400
    assert exc_info.value.details["limit"] == 100
    assert exc_info.value.details["count"] == 101
    assert "more than 100" in exc_info.value.message


def test_excluded_dates_do_not_count_towards_limit():
    start_times = expand(
        make_spec(
            start_date=date(2027, 1, 1),
            end_date=date(2027, 4, 11),
            exclude_dates=[date(2027, 2, 14)],
        )
    )

    assert len(start_times) == 100


def test_custom_limit():
    with pytest.raises(ValidationError) as exc_info:
        expand(make_spec(), max_instances=5)

    assert exc_info.value.details == {"limit": 5, "count": 6}


@pytest.mark.parametrize("pattern", ["weekly", "biweekly"])
def test_weekday_patterns_require_days(pattern):
    with pytest.raises(ValidationError):
        make_spec(pattern=pattern, days_of_week=[])


def test_end_before_start_rejected():
    with pytest.raises(ValidationError):
        make_spec(start_date=date(2027, 3, 7), end_date=date(2027, 3, 1))


def test_day_of_week_out_of_range_rejected():
    with pytest.raises(ValidationError):
        make_spec(pattern="weekly", days_of_week=[7])


@pytest.mark.parametrize(
    "pattern, start_date, expected_days",
    [
        ("daily", date(9999, 12, 31), [31]),
        ("weekly", date(9999, 12, 25), [25, 26, 27, 28, 29, 30, 31]),
        ("biweekly", date(9999, 12, 25), [25]),
        ("monthly", date(9999, 12, 1), [1]),
    ],
)
def test_range_ending_at_last_representable_date(pattern, start_date, expected_days):
    start_times = expand(
        make_spec(
            pattern=pattern,
            days_of_week=[0, 1, 2, 3, 4, 5, 6],
            start_date=start_date,
            end_date=date.max,
        )
    )

    assert [t.day for t in start_times] == expected_days
    assert all(t.year == 9999 and t.month == 12 for t in start_times)


def test_limit_aborts_at_first_instance_over_it():
    with pytest.raises(ValidationError) as exc_info:
        expand(make_spec(start_date=date.min, end_date=date.max))

    assert exc_info.value.details == {"limit": 100, "count": 101}


def test_biweekly_without_start_weekday_yields_nothing_on_long_range():
    # 2027-03-01 is a Monday; stepping by 14 days never reaches a Tuesday
    assert expand(
        make_spec(
            pattern="biweekly",
            days_of_week=[2],
            start_date=date(2027, 3, 1),
            end_date=date.max,
        )
    ) == []
