"""
Calendar helpers shared by the provider calendar endpoint and the client view.

Events are anything with `id`, `type`, `status`, `start` and `end` attributes
(see src.schemas.calendarSchema.CalendarEvent). Weeks start on Sunday.
"""
import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Tuple

from src.commonUtils.enumUtils import BookingStatus, CalendarEventType

# Lower sorts first
EVENT_PRIORITY = {
    CalendarEventType.TIME_OFF.value: 0,
    BookingStatus.PENDING.value: 1,
    BookingStatus.ACCEPTED.value: 2,
    BookingStatus.PAID.value: 3,
    BookingStatus.COMPLETED.value: 4,
}
OTHER_PRIORITY = 5

# Booking statuses that occupy a slot on the calendar
CALENDAR_BOOKING_STATUSES = [
    BookingStatus.PENDING.value,
    BookingStatus.ACCEPTED.value,
    BookingStatus.PAID.value,
    BookingStatus.COMPLETED.value,
]


@dataclass(frozen=True)
class CalendarDay:
    date: date
    in_current_month: bool


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def start_of_day(day) -> datetime:
    return datetime.combine(_as_date(day), time.min)


def end_of_day(day) -> datetime:
    return datetime.combine(_as_date(day), time.max)


def start_of_week(day) -> date:
    day = _as_date(day)
    # weekday(): Monday=0 .. Sunday=6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def end_of_week(day) -> date:
    return start_of_week(day) + timedelta(days=6)


def start_of_month(day) -> date:
    return _as_date(day).replace(day=1)


def end_of_month(day) -> date:
    day = _as_date(day)
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def build_calendar_grid(month) -> List[List[CalendarDay]]:
    """Full weeks covering the month of `month`, Sunday first."""
    month = _as_date(month)
    cursor = start_of_week(start_of_month(month))
    end = end_of_week(end_of_month(month))

    days = []
    while cursor <= end:
        days.append(CalendarDay(date=cursor, in_current_month=(cursor.year, cursor.month) == (month.year, month.month)))
        cursor += timedelta(days=1)

    return [days[i:i + 7] for i in range(0, len(days), 7)]


def build_week(day) -> List[CalendarDay]:
    day = _as_date(day)
    first = start_of_week(day)
    return [
        CalendarDay(date=first + timedelta(days=i),
                    in_current_month=(first + timedelta(days=i)).month == day.month)
        for i in range(7)
    ]


def visible_range(view: str, cursor) -> Tuple[datetime, datetime]:
    """Inclusive [start, end] for a 'month' or 'week' view around `cursor`."""
    if view == "month":
        return start_of_day(start_of_month(cursor)), end_of_day(end_of_month(cursor))
    if view == "week":
        return start_of_day(start_of_week(cursor)), end_of_day(end_of_week(cursor))
    raise ValueError(f"Unknown calendar view: {view}")


def is_on_day(event, day) -> bool:
    """True when [start, end] touches the calendar day, both boundaries inclusive."""
    start = _as_date(event.start)
    end = _as_date(event.end or event.start)
    return start <= _as_date(day) <= end


def event_priority(event) -> int:
    if getattr(event, "type", None) == CalendarEventType.TIME_OFF.value:
        return EVENT_PRIORITY[CalendarEventType.TIME_OFF.value]
    status = getattr(event, "status", None)
    if isinstance(status, BookingStatus):
        status = status.value
    return EVENT_PRIORITY.get(status, OTHER_PRIORITY)


def sort_events(events: Iterable) -> list:
    return sorted(events, key=lambda e: (event_priority(e), e.start, str(e.id)))


def events_for_day(events: Iterable, day) -> list:
    return sort_events(e for e in events if is_on_day(e, day))
