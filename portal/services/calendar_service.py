"""Calendar geometry.

Pure date arithmetic used to lay appointments out on the week, day and month
views and to offer bookable hours. Nothing here touches the database.
"""
import calendar as _calendar
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..schemas.calendar import TimeSlot, WeekDay, MonthCell, AvailabilitySlot, CalendarEvent

DAY_NAMES = ["DOM", "LUN", "MAR", "MIE", "JUE", "VIE", "SAB"]

# Week view: 7 AM - 2 PM rows of 64px, 4px gap between stacked events
WEEK_FIRST_HOUR = 7
WEEK_LAST_HOUR = 14
WEEK_HOUR_HEIGHT = 64
WEEK_EVENT_GAP = 4

# Day view: 7 AM - 8 PM rows of 80px
DAY_FIRST_HOUR = 7
DAY_LAST_HOUR = 20
DAY_HOUR_HEIGHT = 80

MONTH_GRID_CELLS = 42  # 6 weeks x 7 days


def hour_label(hour: int) -> str:
    if hour == 0:
        return "12 AM"
    if hour < 12:
        return f"{hour} AM"
    if hour == 12:
        return "12 PM"
    return f"{hour - 12} PM"


def time_slots(first_hour: int, last_hour: int) -> List[TimeSlot]:
    """One row per hour, both ends included."""
    return [
        TimeSlot(hour=h, label=hour_label(h), time=f"{h:02d}:00")
        for h in range(first_hour, last_hour + 1)
    ]


def start_of_week(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def week_days(week_start: date, count: int = 5) -> List[WeekDay]:
    days = []
    for i in range(count):
        current = week_start + timedelta(days=i)
        days.append(WeekDay(
            date=current,
            # date.weekday() is Monday=0; names are Sunday first
            day_name=DAY_NAMES[(current.weekday() + 1) % 7],
            day_number=current.day
        ))
    return days


def event_geometry(
    start: datetime,
    end: datetime,
    first_hour: int = WEEK_FIRST_HOUR,
    hour_height: float = WEEK_HOUR_HEIGHT,
    gap: float = WEEK_EVENT_GAP
) -> Tuple[float, float]:
    """Pixel ``(top, height)`` of an event block inside a day column."""
    start_hours = start.hour + start.minute / 60
    duration_hours = max((end - start).total_seconds() / 3600, 0)

    top = (start_hours - first_hour) * hour_height
    height = max(duration_hours * hour_height - gap, 0)
    return round(top, 2), round(height, 2)


def month_grid(
    year: int,
    month: int,
    events_by_day: Optional[Dict[date, List[CalendarEvent]]] = None,
    today: Optional[date] = None
) -> List[MonthCell]:
    """Sunday-first 6x7 grid padded with the neighbouring months' days.

    Events are attached to days of the displayed month only.
    """
    events_by_day = events_by_day or {}
    today = today or date.today()

    first = date(year, month, 1)
    leading = (first.weekday() + 1) % 7

    cells = []
    grid_start = first - timedelta(days=leading)
    for i in range(MONTH_GRID_CELLS):
        current = grid_start + timedelta(days=i)
        in_month = current.month == month and current.year == year
        cells.append(MonthCell(
            date=current,
            day=current.day,
            is_current_month=in_month,
            is_today=current == today,
            events=events_by_day.get(current, []) if in_month else []
        ))
    return cells


def month_bounds(year: int, month: int) -> Tuple[datetime, datetime]:
    """First and last instant of a month."""
    days_in_month = _calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1)
    end = datetime(year, month, days_in_month, 23, 59, 59)
    return start, end


def available_slots(
    day: date,
    occupied: Iterable[datetime],
    business_hours: Sequence[str],
    now: Optional[datetime] = None
) -> List[AvailabilitySlot]:
    """Business hours of ``day`` flagged as free, booked or already past."""
    now = now or datetime.utcnow()
    booked = {f"{start.hour:02d}:00" for start in occupied if start.date() == day}

    slots = []
    for slot in business_hours:
        hour, minute = (int(part) for part in slot.split(":"))
        slot_start = datetime(day.year, day.month, day.day, hour, minute)

        if slot in booked:
            slots.append(AvailabilitySlot(time=slot, available=False, reason="occupied"))
        elif slot_start <= now:
            slots.append(AvailabilitySlot(time=slot, available=False, reason="past"))
        else:
            slots.append(AvailabilitySlot(time=slot, available=True))
    return slots


def group_by_day(events: Iterable[CalendarEvent]) -> Dict[date, List[CalendarEvent]]:
    grouped: Dict[date, List[CalendarEvent]] = {}
    for event in events:
        grouped.setdefault(event.start_at.date(), []).append(event)
    return grouped
