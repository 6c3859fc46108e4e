from datetime import datetime
from typing import List

from beanie import PydanticObjectId
from fastapi import HTTPException, status

from src.commonUtils.calendarUtil import CALENDAR_BOOKING_STATUSES, sort_events
from src.commonUtils.enumUtils import CalendarEventType
from src.models.bookingModel import Booking
from src.models.providerModel import Provider
from src.models.timeOffModel import TimeOffBlock
from src.schemas.calendarSchema import CalendarEvent, CalendarResponse, TimeOffCreate, TimeOffRead

import logging

logger = logging.getLogger(__name__)


def booking_to_event(booking) -> CalendarEvent:
    start = booking.scheduled_date
    return CalendarEvent(
        id=booking.id,
        type=CalendarEventType.BOOKING,
        status=booking.status,
        start=start,
        # a booking is a single scheduled moment, never spanning into the next day
        end=start,
        title=booking.service_title,
    )


def time_off_to_event(block) -> CalendarEvent:
    return TimeOffRead.model_validate(block).to_event()


class CalendarService:
    """Provider calendar: scheduled bookings and time-off blocks"""

    @staticmethod
    async def get_calendar(provider: Provider, start: datetime, end: datetime) -> CalendarResponse:
        if end < start:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end must not be before start")

        bookings = await Booking.find({
            "provider_id": provider.id,
            "scheduled_date": {"$gte": start, "$lte": end},
            "status": {"$in": CALENDAR_BOOKING_STATUSES},
        }).to_list()

        # Any block overlapping the window, including ones that started before it
        time_offs = await TimeOffBlock.find({
            "provider_id": provider.id,
            "start_time": {"$lte": end},
            "end_time": {"$gte": start},
        }).to_list()

        return CalendarResponse(
            bookings=sort_events(booking_to_event(b) for b in bookings),
            time_offs=sort_events(time_off_to_event(t) for t in time_offs),
        )

    @staticmethod
    async def list_time_off(provider: Provider) -> List[TimeOffBlock]:
        return await TimeOffBlock.find({"provider_id": provider.id}).sort("start_time").to_list()

    @staticmethod
    async def create_time_off(provider: Provider, data: TimeOffCreate) -> TimeOffBlock:
        if data.end_time <= data.start_time:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End time must be after start time")

        block = TimeOffBlock(
            provider_id=provider.id,
            start_time=data.start_time,
            end_time=data.end_time,
            reason=data.reason,
        )
        await block.insert()
        logger.info(f"Time off {block.id} created for provider {provider.id}")
        return block

    @staticmethod
    async def delete_time_off(provider: Provider, time_off_id: PydanticObjectId) -> None:
        block = await TimeOffBlock.get(time_off_id)
        if not block:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Time off not found")
        if block.provider_id != provider.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN,
                                detail="You can only delete your own time off")
        await block.delete()
        logger.info(f"Time off {time_off_id} deleted by provider {provider.id}")
