from datetime import date, datetime
from typing import List, Optional

import logging

from src.client.apiClient import ApiClient
from src.client.optimisticList import OptimisticList
from src.commonUtils.calendarUtil import (
    CalendarDay,
    build_calendar_grid,
    build_week,
    events_for_day,
    visible_range,
)
from src.commonUtils.enumUtils import CalendarEventType
from src.commonUtils.errorUtils import FetchFailure, ValidationFailure
from src.schemas.calendarSchema import CalendarEvent

logger = logging.getLogger(__name__)


class ProviderCalendarView:
    """
    Month/week calendar of bookings and time-off for the signed-in provider.

    Range fetches are tagged with a generation number; a response whose
    generation is no longer current is dropped, so the last request wins.
    """

    def __init__(self, api: ApiClient, view: str = "month", cursor: Optional[date] = None):
        self.api = api
        self.view = view
        self.cursor = cursor or date.today()
        self.range_start: Optional[datetime] = None
        self.range_end: Optional[datetime] = None
        self.bookings: List[CalendarEvent] = []
        self.time_offs: OptimisticList[CalendarEvent] = OptimisticList(key=lambda e: e.id)
        self.loading = False
        self.error: Optional[str] = None
        self._generation = 0

    async def set_range(self, start: datetime, end: datetime) -> bool:
        """Fetch [start, end]. Returns False on failure or when a newer range superseded this one."""
        self._generation += 1
        generation = self._generation
        self.range_start, self.range_end = start, end
        self.loading = True
        try:
            data = await self.api.get_calendar(start, end)
        except FetchFailure as e:
            if generation == self._generation:
                self.error = e.message
            return False
        finally:
            if generation == self._generation:
                self.loading = False

        if generation != self._generation:
            logger.debug(f"Dropping stale calendar response for {start:%Y-%m-%d}..{end:%Y-%m-%d}")
            return False

        self.bookings = list(data.bookings)
        self.time_offs.replace_all(data.time_offs)
        self.error = None
        return True

    async def show(self, view: str, cursor: date) -> bool:
        self.view, self.cursor = view, cursor
        start, end = visible_range(view, cursor)
        return await self.set_range(start, end)

    def grid(self) -> List[List[CalendarDay]]:
        if self.view == "week":
            return [build_week(self.cursor)]
        return build_calendar_grid(self.cursor)

    def events(self) -> List[CalendarEvent]:
        return self.bookings + self.time_offs.items

    def events_for_day(self, day) -> List[CalendarEvent]:
        return events_for_day(self.events(), day)

    async def create_time_off(self, start: datetime, end: datetime,
                              reason: Optional[str] = None) -> Optional[CalendarEvent]:
        if end <= start:
            self.error = ValidationFailure("End time must be after start time").message
            return None

        staged = CalendarEvent(
            id=self.time_offs.next_temp_id(),
            type=CalendarEventType.TIME_OFF,
            status=CalendarEventType.TIME_OFF.value,
            start=start,
            end=end,
            title=reason or "Time off",
        )

        async def commit() -> CalendarEvent:
            created = await self.api.create_time_off(start, end, reason)
            return created.to_event()

        self.error = None
        try:
            return await self.time_offs.insert(staged, commit)
        except FetchFailure as e:
            self.error = e.message
            return None

    async def delete_time_off(self, time_off_id: str) -> bool:
        if self.time_offs.get(time_off_id) is None:
            self.error = "Time off not found"
            return False

        self.error = None
        try:
            await self.time_offs.remove(time_off_id, lambda: self.api.delete_time_off(time_off_id))
            return True
        except FetchFailure as e:
            self.error = e.message
            return False
