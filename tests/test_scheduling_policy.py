import pytest
from datetime import date, datetime, timezone

from link_monitor.models import Frequency, RestartSchedule
from link_monitor.scheduling_policy import (
    describe,
    next_occurrence,
    nth_weekday_of_month,
    sunday_based_weekday,
)


# ========
# FIXTURES
# ========
def ts(*args):
    """Unix seconds for a UTC wall time"""
    return int(datetime(*args, tzinfo=timezone.utc).timestamp())


# Monday, 1 January 2024, 10:00:00 UTC
MONDAY_10AM = ts(2024, 1, 1, 10, 0, 0)


# ===========================
# TEST GROUP: Calendar Helpers
# ===========================
@pytest.mark.parametrize(
    "day, expected",
    [
        (date(2024, 1, 7), 1),   # Sunday
        (date(2024, 1, 1), 2),   # Monday
        (date(2024, 1, 6), 7),   # Saturday
    ],
)

def test_sunday_based_weekday(day, expected):
    """Weekdays number 1=Sunday .. 7=Saturday"""
    assert sunday_based_weekday(day) == expected


@pytest.mark.parametrize(
    "year, month, week, day_of_week, expected",
    [
        # ✅ First Sunday of January 2024 (the 1st is a Monday)
        (2024, 1, 1, 1, date(2024, 1, 7)),

        # ✅ First Monday is the 1st itself
        (2024, 1, 1, 2, date(2024, 1, 1)),

        # ✅ Second Tuesday of February 2024
        (2024, 2, 2, 3, date(2024, 2, 13)),

        # ✅ Fourth Saturday of March 2024
        (2024, 3, 4, 7, date(2024, 3, 23)),
    ],
)

def test_nth_weekday_of_month(year, month, week, day_of_week, expected):
    """Verify the nth weekday formula"""
    assert nth_weekday_of_month(year, month, week, day_of_week) == expected


# ================================
# TEST GROUP: Next Occurrence
# ================================
# Function: next_occurrence()
# ---------------------------
@pytest.mark.parametrize(
    "schedule, expected",
    [
        # ✅ Daily, later today
        (RestartSchedule(True, Frequency.DAILY, hour=12), ts(2024, 1, 1, 12, 0, 0)),

        # ✅ Daily, already passed today -> tomorrow
        (RestartSchedule(True, Frequency.DAILY, hour=9, minute=30), ts(2024, 1, 2, 9, 30, 0)),

        # ✅ Daily, exactly now -> tomorrow
        (RestartSchedule(True, Frequency.DAILY, hour=10), ts(2024, 1, 2, 10, 0, 0)),

        # ✅ Weekly, Wednesday this week
        (RestartSchedule(True, Frequency.WEEKLY, day_of_week=4, hour=3), ts(2024, 1, 3, 3, 0, 0)),

        # ✅ Weekly, today but passed -> next week
        (RestartSchedule(True, Frequency.WEEKLY, day_of_week=2, hour=9), ts(2024, 1, 8, 9, 0, 0)),

        # ✅ Weekly, Sunday wraps forward
        (RestartSchedule(True, Frequency.WEEKLY, day_of_week=1, hour=4), ts(2024, 1, 7, 4, 0, 0)),

        # ✅ Monthly, later this month
        (RestartSchedule(True, Frequency.MONTHLY, day_of_week=1, week_of_month=1, hour=9), ts(2024, 1, 7, 9, 0, 0)),

        # ✅ Monthly, first Monday already passed -> February
        (RestartSchedule(True, Frequency.MONTHLY, day_of_week=2, week_of_month=1, hour=9), ts(2024, 2, 5, 9, 0, 0)),

        # ❌ Disabled
        (RestartSchedule(False, Frequency.DAILY, hour=12), None),

        # ❌ Enabled but never configured
        (RestartSchedule(True), None),

        # ❌ No schedule at all
        (None, None),
    ],
)

def test_next_occurrence(schedule, expected):
    """Verify next restart time per frequency"""
    assert next_occurrence(schedule, MONDAY_10AM, timezone.utc) == expected


def test_next_occurrence_always_in_future():
    """Every enabled schedule resolves strictly after now"""
    schedules = [
        RestartSchedule(True, Frequency.DAILY, hour=h)
        for h in range(24)
    ] + [
        RestartSchedule(True, Frequency.WEEKLY, day_of_week=d, hour=10)
        for d in range(1, 8)
    ] + [
        RestartSchedule(True, Frequency.MONTHLY, day_of_week=d, week_of_month=w)
        for d in range(1, 8) for w in range(1, 5)
    ]

    for schedule in schedules:
        assert next_occurrence(schedule, MONDAY_10AM) > MONDAY_10AM


def test_monthly_rolls_over_year():
    """A passed December occurrence resolves in January of the next year"""
    now = ts(2024, 12, 31, 12, 0, 0)
    schedule = RestartSchedule(True, Frequency.MONTHLY, day_of_week=1, week_of_month=1)

    # First Sunday of January 2025 is the 5th
    assert next_occurrence(schedule, now) == ts(2025, 1, 5, 0, 0, 0)


# ================================
# TEST GROUP: Schedule Description
# ================================
@pytest.mark.parametrize(
    "schedule, expected",
    [
        (None, "Auto-restart disabled"),
        (RestartSchedule(False, Frequency.DAILY), "Auto-restart disabled"),
        (RestartSchedule(True, Frequency.DAILY, hour=3, minute=5), "Daily restart at 03:05:00"),
        (RestartSchedule(True, Frequency.WEEKLY, day_of_week=6, hour=4), "Weekly restart every Friday at 04:00:00"),
        (
            RestartSchedule(True, Frequency.MONTHLY, day_of_week=1, week_of_month=2, hour=2),
            "Monthly restart on the second Sunday at 02:00:00",
        ),
    ],
)

def test_describe(schedule, expected):
    """Verify human readable schedule summaries"""
    assert describe(schedule) == expected
