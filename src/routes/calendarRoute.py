from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from beanie import PydanticObjectId

from src.models.providerModel import Provider
from src.schemas.calendarSchema import CalendarResponse, TimeOffCreate, TimeOffRead
from src.dependencies.roleDependencies import current_provider
from src.crud.calendarService import CalendarService

router = APIRouter()


@router.get("/provider/calendar", response_model=CalendarResponse, response_model_by_alias=True,
            tags=["calendar"])
async def get_provider_calendar(
        start: datetime = Query(..., description="Inclusive range start"),
        end: datetime = Query(..., description="Inclusive range end"),
        provider: Provider = Depends(current_provider)
):
    """Scheduled bookings and overlapping time-off for the caller's provider account"""
    try:
        return await CalendarService.get_calendar(provider, start, end)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error loading calendar: {str(e)}"
        )


@router.get("/provider/time-off", response_model=List[TimeOffRead], tags=["calendar"])
async def list_time_off(provider: Provider = Depends(current_provider)):
    return await CalendarService.list_time_off(provider)


@router.post("/provider/time-off", response_model=TimeOffRead, status_code=status.HTTP_201_CREATED,
             tags=["calendar"])
async def create_time_off(
        data: TimeOffCreate,
        provider: Provider = Depends(current_provider)
):
    """Block out a period. End must be after start."""
    return await CalendarService.create_time_off(provider, data)


@router.delete("/provider/time-off/{time_off_id}", tags=["calendar"])
async def delete_time_off(
        time_off_id: PydanticObjectId,
        provider: Provider = Depends(current_provider)
):
    await CalendarService.delete_time_off(provider, time_off_id)
    return {"ok": True, "id": str(time_off_id)}
