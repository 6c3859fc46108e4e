from datetime import date, datetime
from typing import Any, List, Optional, Type

import httpx
import logging
from pydantic import BaseModel, ValidationError

from src.client.clientConfig import ClientConfig
from src.commonUtils.errorUtils import FetchFailure
from src.schemas.bookingSchema import BookingRead
from src.schemas.calendarSchema import CalendarResponse, TimeOffRead
from src.schemas.reportSchema import FeeReport

logger = logging.getLogger(__name__)


def failure_message(response: httpx.Response) -> str:
    """The response body is the message users see; fall back to the status line when it is empty"""
    text = response.text.strip()
    return text or f"Request failed with status {response.status_code}"


def parse(model: Type[BaseModel], data: Any, what: str):
    """A 2xx whose body does not match the expected shape is reported like any other failed fetch"""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning(f"⚠️ Unexpected {what} payload: {e.error_count()} validation error(s)")
        raise FetchFailure(f"Unexpected response for {what}")


class ApiClient:
    """
    Thin async wrapper over the bookings API.
    Every network error or non-2xx response is raised as FetchFailure.
    """

    def __init__(self, config: ClientConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        headers = {"Accept": "application/json"}
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout,
            headers=headers,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def request(self, method: str, path: str, json: Any = None, params: Optional[dict] = None) -> Any:
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.TimeoutException:
            raise FetchFailure(f"Request timed out: {method} {path}")
        except httpx.HTTPError as e:
            raise FetchFailure(f"Network error calling {method} {path}: {e}")

        if response.is_error:
            logger.debug(f"{method} {path} failed with {response.status_code}")
            raise FetchFailure(failure_message(response), status_code=response.status_code)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            raise FetchFailure(f"Invalid JSON from {method} {path}", status_code=response.status_code)

    # -------- BOOKINGS --------

    async def list_bookings(self) -> List[BookingRead]:
        data = await self.request("GET", "/bookings")
        return [parse(BookingRead, item, "booking") for item in data]

    async def list_provider_bookings(self) -> List[BookingRead]:
        data = await self.request("GET", "/provider/bookings")
        return [parse(BookingRead, item, "booking") for item in data]

    async def update_status(self, booking_id: str, action: str, reason: Optional[str] = None,
                            final_price_in_cents: Optional[int] = None,
                            provider_message: Optional[str] = None) -> dict:
        body = {"bookingId": booking_id, "action": action}
        if reason is not None:
            body["reason"] = reason
        if final_price_in_cents is not None:
            body["finalPriceInCents"] = final_price_in_cents
        if provider_message is not None:
            body["providerMessage"] = provider_message
        return await self.request("PATCH", "/bookings/update-status", json=body)

    async def submit_review(self, booking_id: str, rating: int, comment: Optional[str] = None) -> None:
        # any 2xx means the review was stored; the list refetch carries the result
        await self.request("POST", f"/bookings/{booking_id}/review", json={"rating": rating, "comment": comment})

    # -------- PAYMENTS --------

    async def pay(self, booking_id: str) -> dict:
        return await self.request("POST", f"/bookings/{booking_id}/pay")

    async def sync_payment(self, booking_id: str, session_id: Optional[str] = None) -> dict:
        return await self.request("POST", f"/bookings/{booking_id}/sync-payment", json={"sessionId": session_id})

    # -------- CALENDAR --------

    async def get_calendar(self, start: datetime, end: datetime) -> CalendarResponse:
        data = await self.request("GET", "/provider/calendar",
                                  params={"start": start.isoformat(), "end": end.isoformat()})
        return parse(CalendarResponse, data, "calendar")

    async def create_time_off(self, start: datetime, end: datetime, reason: Optional[str] = None) -> TimeOffRead:
        data = await self.request("POST", "/provider/time-off", json={
            "startTime": start.isoformat(),
            "endTime": end.isoformat(),
            "reason": reason,
        })
        return parse(TimeOffRead, data, "time off")

    async def delete_time_off(self, time_off_id: str) -> None:
        await self.request("DELETE", f"/provider/time-off/{time_off_id}")

    # -------- REPORTS --------

    async def fees_report(self, range_from: date, range_to: date) -> FeeReport:
        data = await self.request("GET", "/admin/reports/fees",
                                  params={"from": range_from.isoformat(), "to": range_to.isoformat()})
        return parse(FeeReport, data, "fees report")
