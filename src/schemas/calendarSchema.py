from datetime import datetime
from typing import List, Optional

from pydantic import Field, model_validator

from src.commonUtils.enumUtils import CalendarEventType
from src.schemas.baseSchema import CamelModel, ObjectIdStr, document_id


class CalendarEvent(CamelModel):
    """Bookings and time-off share one shape, told apart by `type`"""
    id: ObjectIdStr = document_id()
    type: CalendarEventType
    status: str  # booking status, or "time_off"
    start: datetime
    end: datetime
    title: str


class CalendarResponse(CamelModel):
    bookings: List[CalendarEvent] = Field(default_factory=list)
    time_offs: List[CalendarEvent] = Field(default_factory=list)


class TimeOffCreate(CamelModel):
    start_time: datetime
    end_time: datetime
    reason: Optional[str] = Field(None, max_length=200)

    @model_validator(mode="after")
    def check_interval(self):
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        return self


class TimeOffRead(CamelModel):
    id: ObjectIdStr = document_id()
    provider_id: ObjectIdStr
    start_time: datetime
    end_time: datetime
    reason: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_event(self) -> CalendarEvent:
        return CalendarEvent(
            id=self.id,
            type=CalendarEventType.TIME_OFF,
            status=CalendarEventType.TIME_OFF.value,
            start=self.start_time,
            end=self.end_time,
            title=self.reason or "Time off",
        )
