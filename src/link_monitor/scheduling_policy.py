# ─── Standard library imports ───
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional

# ─── Project imports ───
from .models import DAY_NAMES, WEEK_NAMES, Frequency, RestartSchedule


def sunday_based_weekday(d: date) -> int:
    """Day of week with 1=Sunday .. 7=Saturday."""
    return (d.weekday() + 1) % 7 + 1


def nth_weekday_of_month(year: int, month: int, week_of_month: int, day_of_week: int) -> date:
    """
    Date of `day_of_week` in week `week_of_month` of the given month.

    target = 1 + (week - 1) * 7 + ((day_of_week - first_day_of_month + 7) mod 7)
    """
    first_dow = sunday_based_weekday(date(year, month, 1))
    day = 1 + (week_of_month - 1) * 7 + ((day_of_week - first_dow + 7) % 7)
    return date(year, month, day)


def _next_month(year: int, month: int) -> tuple[int, int]:
    return (year + 1, 1) if month == 12 else (year, month + 1)


def next_occurrence(
    schedule: Optional[RestartSchedule],
    now: float,
    tz: tzinfo = timezone.utc,
) -> Optional[int]:
    """
    Compute the next restart time (unix seconds) for a recurring schedule.

    Rules:
      - Daily:   today at hh:mm:ss, or tomorrow if that is <= now
      - Weekly:  next `day_of_week`; a full week ahead if it is today and passed
      - Monthly: `day_of_week` of week `week_of_month`; next month if passed

    Returns None when the schedule is disabled or has no frequency. Wall-clock
    arithmetic happens in `tz`, so results are identical for identical inputs.
    """
    if schedule is None or not schedule.enabled or schedule.frequency is None:
        return None

    current = datetime.fromtimestamp(now, tz)
    at = time(schedule.hour, schedule.minute, schedule.second)

    def at_date(d: date) -> datetime:
        return datetime.combine(d, at, tzinfo=tz)

    today = current.date()

    match schedule.frequency:
        case Frequency.DAILY:
            candidate = at_date(today)
            if candidate.timestamp() <= now:
                candidate = at_date(today + timedelta(days=1))

        case Frequency.WEEKLY:
            delta = schedule.day_of_week - sunday_based_weekday(today)
            if delta < 0:
                delta += 7
            elif delta == 0 and at_date(today).timestamp() <= now:
                delta = 7
            candidate = at_date(today + timedelta(days=delta))

        case Frequency.MONTHLY:
            candidate = at_date(nth_weekday_of_month(
                today.year, today.month, schedule.week_of_month, schedule.day_of_week,
            ))
            if candidate.timestamp() <= now:
                year, month = _next_month(today.year, today.month)
                candidate = at_date(nth_weekday_of_month(
                    year, month, schedule.week_of_month, schedule.day_of_week,
                ))

        case _:
            return None

    return int(candidate.timestamp())


def describe(schedule: Optional[RestartSchedule]) -> str:
    """Human readable summary of a schedule for the link panel."""
    if schedule is None or not schedule.enabled:
        return "Auto-restart disabled"

    at = f"{schedule.hour:02d}:{schedule.minute:02d}:{schedule.second:02d}"
    day_name = DAY_NAMES.get(schedule.day_of_week, "Unknown")

    if schedule.frequency == Frequency.DAILY:
        return f"Daily restart at {at}"
    if schedule.frequency == Frequency.WEEKLY:
        return f"Weekly restart every {day_name} at {at}"
    if schedule.frequency == Frequency.MONTHLY:
        week_name = WEEK_NAMES.get(schedule.week_of_month, "Unknown")
        return f"Monthly restart on the {week_name} {day_name} at {at}"
    return "Auto-restart enabled (no schedule configured)"
