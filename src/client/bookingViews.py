"""
Booking list view models for the customer and provider dashboards.

A view holds the fetched list plus its loading/error state and turns each
booking into a BookingRow: label, badge variant, next-step hint, price and
the actions legal for that status. Actions issue exactly one request; errors
are stored on the view as text and never raised to the caller.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Set

import logging

from src.client.apiClient import ApiClient
from src.client.optimisticList import OptimisticList
from src.commonUtils.bookingStateUtil import (
    action_requires_reason,
    available_actions,
    format_price,
    next_step_hint,
    resolve_amount,
    status_badge_variant,
    status_label,
)
from src.commonUtils.enumUtils import Actor, BookingAction
from src.commonUtils.errorUtils import FetchFailure, InvalidTransition, ValidationFailure
from src.schemas.bookingSchema import BookingRead

logger = logging.getLogger(__name__)

REVIEW_SUBMITTED = "Review submitted"


@dataclass
class BookingRow:
    booking: BookingRead
    label: str
    variant: str
    hint: str
    price_display: str
    actions: List[BookingAction] = field(default_factory=list)
    busy: bool = False
    review_label: Optional[str] = None


class BookingsView:
    """Shared behaviour; subclasses pick the actor and the list endpoint."""

    actor: Actor = Actor.CUSTOMER

    def __init__(self, api: ApiClient):
        self.api = api
        self._list: OptimisticList[BookingRead] = OptimisticList(key=lambda b: b.id)
        self._spinner_fetches = 0
        self.row_loading: Set[str] = set()
        self.error: Optional[str] = None
        self._background: Set[asyncio.Task] = set()

    @property
    def bookings(self) -> List[BookingRead]:
        return self._list.items

    @property
    def loading(self) -> bool:
        return self._spinner_fetches > 0

    def get(self, booking_id: str) -> Optional[BookingRead]:
        return self._list.get(booking_id)

    async def fetch_bookings(self) -> List[BookingRead]:
        raise NotImplementedError

    async def refresh(self, show_spinner: bool = True) -> bool:
        """Refetch the list. On failure the previous list is kept and `error` is set."""
        if show_spinner:
            self._spinner_fetches += 1
        try:
            self._list.replace_all(await self.fetch_bookings())
            self.error = None
            return True
        except FetchFailure as e:
            self.error = e.message
            return False
        finally:
            # silent refreshes never touch a spinner they did not start
            if show_spinner:
                self._spinner_fetches -= 1

    def rows(self) -> List[BookingRow]:
        rows = []
        for booking in self.bookings:
            amount = resolve_amount(booking.provider_quoted_price, booking.price_at_booking)
            rows.append(BookingRow(
                booking=booking,
                label=status_label(booking.status),
                variant=status_badge_variant(booking.status),
                hint=next_step_hint(booking.status, self.actor),
                price_display=format_price(amount),
                actions=available_actions(booking.status, self.actor, booking.has_review),
                busy=booking.id in self.row_loading,
                review_label=REVIEW_SUBMITTED if booking.has_review else None,
            ))
        return rows

    # ------------------------------------------------------------------------------------------------------#
    #                                       Actions                                                         #
    # ------------------------------------------------------------------------------------------------------#

    def _check_action(self, booking_id: str, action: BookingAction, reason: Optional[str] = None) -> Optional[BookingRead]:
        """Client-side gate. Records the failure and returns None when no request should be sent."""
        booking = self.get(booking_id)
        if booking is None:
            self.error = "Booking not found"
            return None
        if action not in available_actions(booking.status, self.actor, booking.has_review):
            self.error = InvalidTransition(
                booking.status, action.value,
                message=f"Cannot {action.value.replace('_', ' ')} a booking that is {status_label(booking.status).lower()}"
            ).message
            return None
        if action_requires_reason(action) and not (reason or "").strip():
            self.error = ValidationFailure(f"Please provide a reason to {action.value}").message
            return None
        return booking

    async def _run_row_request(self, booking_id: str, send: Callable[[], Awaitable[object]]) -> bool:
        self.row_loading.add(booking_id)
        self.error = None
        try:
            await send()
        except FetchFailure as e:
            self.error = e.message
            return False
        finally:
            self.row_loading.discard(booking_id)
        await self.refresh(show_spinner=False)
        return True

    async def _transition(self, booking_id: str, action: BookingAction, reason: Optional[str] = None,
                          **extra) -> bool:
        if self._check_action(booking_id, action, reason) is None:
            return False
        reason = reason.strip() if reason else None
        return await self._run_row_request(
            booking_id,
            lambda: self.api.update_status(booking_id, action.value, reason=reason, **extra),
        )

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def wait_background(self) -> None:
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def close(self) -> None:
        for task in list(self._background):
            task.cancel()


class CustomerBookingsView(BookingsView):
    actor = Actor.CUSTOMER

    def __init__(self, api: ApiClient, navigate: Optional[Callable[[str], None]] = None):
        super().__init__(api)
        self.navigate = navigate
        self.notice: Optional[str] = None

    async def fetch_bookings(self) -> List[BookingRead]:
        return await self.api.list_bookings()

    async def cancel(self, booking_id: str, reason: Optional[str]) -> bool:
        return await self._transition(booking_id, BookingAction.CANCEL, reason)

    async def confirm_completion(self, booking_id: str) -> bool:
        return await self._transition(booking_id, BookingAction.CONFIRM_COMPLETION)

    async def pay(self, booking_id: str) -> bool:
        """Start Stripe Checkout and hand the whole page over to it"""
        if self._check_action(booking_id, BookingAction.PAY) is None:
            return False

        self.row_loading.add(booking_id)
        self.error = None
        try:
            data = await self.api.pay(booking_id)
        except FetchFailure as e:
            self.error = e.message
            return False
        finally:
            self.row_loading.discard(booking_id)

        url = data.get("url") if isinstance(data, dict) else None
        if not url:
            self.error = "Payment could not be started: no checkout URL was returned"
            return False
        if self.navigate is not None:
            self.navigate(url)
        return True

    async def submit_review(self, booking_id: str, rating: int, comment: Optional[str] = None) -> bool:
        """Mark the row reviewed right away, then refetch in the background. Rolls back on failure."""
        if self._check_action(booking_id, BookingAction.REVIEW) is None:
            return False
        if not 1 <= rating <= 5:
            self.error = ValidationFailure("Rating must be between 1 and 5").message
            return False

        self.row_loading.add(booking_id)
        self.error = None
        try:
            await self._list.patch(
                booking_id,
                lambda b: b.model_copy(update={"has_review": True}),
                lambda: self.api.submit_review(booking_id, rating, comment),
            )
        except FetchFailure as e:
            self.error = e.message
            self.notice = None
            return False
        finally:
            self.row_loading.discard(booking_id)

        self.notice = REVIEW_SUBMITTED
        self._spawn(self.refresh(show_spinner=False))
        return True


class ProviderBookingsView(BookingsView):
    actor = Actor.PROVIDER

    async def fetch_bookings(self) -> List[BookingRead]:
        return await self.api.list_provider_bookings()

    async def accept(self, booking_id: str, final_price_in_cents: Optional[int] = None,
                     provider_message: Optional[str] = None) -> bool:
        return await self._transition(
            booking_id, BookingAction.ACCEPT,
            final_price_in_cents=final_price_in_cents, provider_message=provider_message,
        )

    async def decline(self, booking_id: str, reason: Optional[str], provider_message: Optional[str] = None) -> bool:
        return await self._transition(booking_id, BookingAction.DECLINE, reason, provider_message=provider_message)

    async def cancel(self, booking_id: str, reason: Optional[str]) -> bool:
        return await self._transition(booking_id, BookingAction.CANCEL, reason)

    async def mark_completed(self, booking_id: str) -> bool:
        return await self._transition(booking_id, BookingAction.MARK_COMPLETED)
