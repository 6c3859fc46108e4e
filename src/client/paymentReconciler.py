"""
Reconciling the bookings view after the customer returns from Stripe Checkout.

The sync POST is only a hint to the server; the booking list (refetched and
then polled for a bounded time) is the source of truth.
"""
import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Protocol
from urllib.parse import parse_qs, parse_qsl, urlencode, urlsplit, urlunsplit

import logging

from src.commonUtils.enumUtils import BookingStatus
from src.commonUtils.errorUtils import FetchFailure, TimeoutGiveUp

logger = logging.getLogger(__name__)

SUCCESS_PARAMS = (
    "success",
    "redirect_status",
    "payment_intent",
    "payment_intent_client_secret",
    "session_id",
    "bookingId",
)


@dataclass(frozen=True)
class ReturnSignal:
    booking_id: Optional[str] = None
    session_id: Optional[str] = None
    payment_intent_id: Optional[str] = None


def detect_success_signal(url: str) -> Optional[ReturnSignal]:
    params = parse_qs(urlsplit(url).query)

    def first(name: str) -> Optional[str]:
        values = params.get(name)
        return values[0] if values else None

    succeeded = (
        (first("success") or "").lower() in ("1", "true")
        or first("redirect_status") == "succeeded"
        or bool(first("payment_intent"))
        or bool(first("payment_intent_client_secret"))
    )
    if not succeeded:
        return None
    return ReturnSignal(
        booking_id=first("bookingId"),
        session_id=first("session_id"),
        payment_intent_id=first("payment_intent"),
    )


def strip_success_params(url: str) -> str:
    parts = urlsplit(url)
    kept = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in SUCCESS_PARAMS]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(kept), parts.fragment))


class PollState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    TIMED_OUT = "timed_out"
    CANCELED = "canceled"


class PaymentPoller:
    """
    Bounded polling: idle -> polling -> succeeded | timed_out | canceled.

    Each tick waits `interval` (never past the ceiling), fetches, and checks
    `predicate`. Reaching `ceiling` without success ends in timed_out, which is
    an outcome, not an error. `sleep` and `clock` are injectable for tests.
    """

    def __init__(self, interval: float = 1.2, ceiling: float = 8.0,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.interval = interval
        self.ceiling = ceiling
        self._sleep = sleep
        self._clock = clock
        self.state = PollState.IDLE
        self.ticks = 0
        self.elapsed = 0.0
        self.give_up: Optional[TimeoutGiveUp] = None
        self._cancel_requested = False

    def cancel(self) -> None:
        self._cancel_requested = True
        if self.state in (PollState.IDLE, PollState.POLLING):
            self.state = PollState.CANCELED

    async def run(self, fetch: Callable[[], Awaitable[Any]], predicate: Callable[[Any], bool]) -> PollState:
        if self._cancel_requested:
            return self.state
        self.state = PollState.POLLING
        started = self._clock()
        try:
            while True:
                self.elapsed = self._clock() - started
                remaining = self.ceiling - self.elapsed
                if remaining <= 0:
                    self.state = PollState.TIMED_OUT
                    self.give_up = TimeoutGiveUp(f"Status not confirmed within {self.ceiling:g}s")
                    break

                await self._sleep(min(self.interval, remaining))
                if self._cancel_requested:
                    break

                result = await fetch()
                self.ticks += 1
                if self._cancel_requested:
                    break
                if predicate(result):
                    self.state = PollState.SUCCEEDED
                    break
        except asyncio.CancelledError:
            self.state = PollState.CANCELED
            raise
        finally:
            self.elapsed = self._clock() - started

        if self._cancel_requested:
            self.state = PollState.CANCELED
        return self.state


class History(Protocol):
    def replace(self, url: str) -> None:
        ...


class PaymentReturnReconciler:
    """
    Runs once per instance when the page URL carries a checkout success signal:
    sync hint, URL cleanup, silent refetch, then polling until the booking is paid.
    """

    def __init__(self, view, api, history: History, poller: Optional[PaymentPoller] = None):
        self.view = view
        self.api = api
        self.history = history
        self.poller = poller or PaymentPoller(api.config.poll_interval, api.config.poll_ceiling)
        self.handled = False
        self._task: Optional[asyncio.Task] = None

    def _is_paid(self, booking_id: str) -> bool:
        booking = self.view.get(booking_id)
        return booking is not None and booking.status == BookingStatus.PAID.value

    def _awaiting_payment(self) -> List[str]:
        return [b.id for b in self.view.bookings if b.status == BookingStatus.ACCEPTED.value]

    async def on_mount(self, url: str) -> bool:
        """Returns True when this call performed the reconciliation."""
        if self.handled:
            return False
        signal = detect_success_signal(url)
        if signal is None:
            return False
        self.handled = True

        if signal.booking_id:
            try:
                await self.api.sync_payment(signal.booking_id, signal.session_id)
            except FetchFailure as e:
                logger.info(f"Payment sync hint failed for booking {signal.booking_id}: {e.message}")

        self.history.replace(strip_success_params(url))
        await self.view.refresh(show_spinner=False)

        if signal.booking_id:
            watched = [signal.booking_id]
        else:
            # Stripe-only return params: watch every booking still waiting on payment
            watched = self._awaiting_payment()
            logger.info(f"Payment return without a booking id, watching {len(watched)} booking(s)")

        if watched and not any(self._is_paid(booking_id) for booking_id in watched):
            self._task = asyncio.create_task(self.poller.run(
                lambda: self.view.refresh(show_spinner=False),
                lambda _: any(self._is_paid(booking_id) for booking_id in watched),
            ))
        return True

    async def wait(self) -> Optional[PollState]:
        if self._task is None:
            return None
        try:
            return await self._task
        except asyncio.CancelledError:
            return PollState.CANCELED

    def teardown(self) -> None:
        self.poller.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
