"""Calendar grid and day-view helpers computed in an explicit timezone."""

from datetime import date, datetime, time, timedelta
from datetime import timezone as dt_timezone
from typing import Literal, Optional, Union

from pydantic import BaseModel

from telehealth_scheduling.scheduling.models import CalendarDay, load_zone

ViewMode = Literal["Day", "Week", "Month"]
TimeSlotFormat = Literal["12hr", "24hr"]

_VIEW_LENGTH: dict[str, int] = {"Day": 1, "Week": 7, "Month": 7}

DateLike = Union[date, datetime, str]


class WeekDay(BaseModel):
    """Header metadata for one column of a day/week view."""

    day: str  # "Mon"
    date: str  # "YYYY-MM-DD"
    year: int
    month: str  # "Jan"
    date_num: int
    active: bool = False


class TimeOfDaySlot(BaseModel):
    """A labelled row of a day view."""

    label: str
    hour: int
    minute: int
    value: datetime
    time_string: str


def _local_midnight(day: date, timezone: str) -> datetime:
    """First existing instant of *day*; DST gaps at 00:00 move it forward."""
    zone = load_zone(timezone)
    wall = datetime.combine(day, time.min, tzinfo=zone)
    return wall.astimezone(dt_timezone.utc).astimezone(zone)


def generate_month_grid(year: int, month_index: int, timezone: str) -> list[CalendarDay]:
    """Build the visible days of a month view, Monday-first.

    Args:
        year: Calendar year
        month_index: Zero-based month (0 = January)
        timezone: IANA timezone the day boundaries are computed in

    Returns:
        Whole weeks of CalendarDay cells. Leading days come from the previous
        month; trailing days run up to the next Sunday, and none are added
        when the month already ends on a Sunday.
    """
    if not 0 <= month_index <= 11:
        raise ValueError(f"month_index must be in 0..11, got {month_index}")
    load_zone(timezone)

    month = month_index + 1
    first = date(year, month, 1)
    next_first = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    last = next_first - timedelta(days=1)

    grid_start = first - timedelta(days=first.weekday())
    grid_end = last + timedelta(days=6 - last.weekday())

    days: list[CalendarDay] = []
    current = grid_start
    while current <= grid_end:
        days.append(
            CalendarDay(
                date=current,
                in_current_month=current.month == month and current.year == year,
                start=_local_midnight(current, timezone),
            )
        )
        current += timedelta(days=1)
    return days


def month_grid_rows(days: list[CalendarDay]) -> list[list[CalendarDay]]:
    """Split a flat grid into 7-day rows."""
    return [days[i : i + 7] for i in range(0, len(days), 7)]


def shift_month(year: int, month_index: int, offset: int) -> tuple[int, int]:
    """Move *offset* months from ``(year, month_index)``."""
    total = year * 12 + month_index + offset
    return total // 12, total % 12


def _to_local(value: DateLike, timezone: str) -> datetime:
    zone = load_zone(timezone)
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=zone)
        return value.astimezone(zone)
    return datetime.combine(value, time.min, tzinfo=zone)


def get_week_dates(
    base: DateLike,
    view: ViewMode = "Day",
    offset: int = 0,
    timezone: str = "UTC",
    start_from_monday: bool = True,
) -> list[WeekDay]:
    """Return the header days for a Day, Week or Month view.

    Week and Month views start on the week start containing *base*;
    *offset* moves by the view's length (1 day or 7 days).
    """
    if view not in _VIEW_LENGTH:
        raise ValueError(f"Unknown view: {view!r}")
    today = _to_local(base, timezone).date()
    length = _VIEW_LENGTH[view]

    if view == "Day":
        diff = 0
    elif start_from_monday:
        diff = -today.weekday()
    else:
        diff = -((today.weekday() + 1) % 7)

    start = today + timedelta(days=diff + offset * length)
    days: list[WeekDay] = []
    for i in range(length):
        d = start + timedelta(days=i)
        days.append(
            WeekDay(
                day=d.strftime("%a"),
                date=d.isoformat(),
                year=d.year,
                month=d.strftime("%b"),
                date_num=d.day,
                active=i == 0,
            )
        )
    return days


def generate_time_slots(
    day: Optional[DateLike] = None,
    start_hour: int = 0,
    end_hour: int = 24,
    fmt: TimeSlotFormat = "24hr",
    step_minutes: int = 60,
    timezone: str = "UTC",
    now: Optional[datetime] = None,
) -> list[TimeOfDaySlot]:
    """Generate labelled rows between *start_hour* and *end_hour* for a day.

    Without *day*, the current day in *timezone* is used (*now* overrides
    the clock).
    """
    if step_minutes <= 0:
        raise ValueError("step_minutes must be positive")
    zone = load_zone(timezone)
    if day is None:
        base_day = (now or datetime.now(zone)).astimezone(zone).date()
    else:
        base_day = _to_local(day, timezone).date()

    slots: list[TimeOfDaySlot] = []
    total_minutes = (end_hour - start_hour) * 60
    for minute_offset in range(0, total_minutes, step_minutes):
        hour, minute = divmod(start_hour * 60 + minute_offset, 60)
        if hour >= end_hour:
            break
        value = datetime.combine(base_day, time(hour, minute), tzinfo=zone)
        label = value.strftime("%I:%M %p").lstrip("0") if fmt == "12hr" else value.strftime("%H:%M")
        slots.append(
            TimeOfDaySlot(
                label=label,
                hour=hour,
                minute=minute,
                value=value,
                time_string=value.strftime("%H:%M"),
            )
        )
    return slots


def local_date_string(value: DateLike, timezone: str = "UTC") -> str:
    """Format an instant as ``YYYY-MM-DD`` in *timezone*."""
    return _to_local(value, timezone).strftime("%Y-%m-%d")


def format_hour_minute(value: DateLike, timezone: str = "UTC") -> str:
    """Format an instant as 24-hour ``HH:MM`` in *timezone*."""
    return _to_local(value, timezone).strftime("%H:%M")


def is_same_day(a: DateLike, b: DateLike, timezone: str = "UTC") -> bool:
    """Compare calendar days; plain ``YYYY-MM-DD`` strings are taken as-is."""
    da = a if isinstance(a, str) and len(a) == 10 else local_date_string(a, timezone)
    db = b if isinstance(b, str) and len(b) == 10 else local_date_string(b, timezone)
    return da == db


def is_same_time_slot(a: Union[str, datetime], b: Union[str, datetime], timezone: str = "UTC") -> bool:
    """Compare ``HH:MM`` times; strings are taken as already formatted."""
    ta = a if isinstance(a, str) else format_hour_minute(a, timezone)
    tb = b if isinstance(b, str) else format_hour_minute(b, timezone)
    return ta == tb


def combine_local_datetime(date_str: str, time_str: str, timezone: str = "UTC") -> datetime:
    """Combine ``YYYY-MM-DD`` and ``HH:MM`` into an aware datetime in *timezone*."""
    naive = datetime.strptime(f"{date_str} {time_str}", "%Y-%m-%d %H:%M")
    return naive.replace(tzinfo=load_zone(timezone))
