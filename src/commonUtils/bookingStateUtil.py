"""
Booking lifecycle: canonical statuses, who may move a booking where, and the
pure presentation helpers every view uses (labels, badge variants, next-step
hints, price display).

Flow:
    pending --provider--> accepted --payment--> paid --provider--> completed_by_provider --customer--> completed
       |                     |                   |
       |                     |                   +--admin/payment--> disputed | refunded
       +--> declined         +--> canceled_customer / canceled_provider
       +--> canceled_customer
"""
from typing import Dict, FrozenSet, List, Optional, Tuple, Union

from src.commonUtils.enumUtils import BookingStatus, Actor, BookingAction
from src.commonUtils.errorUtils import InvalidTransition, ValidationFailure

S = BookingStatus

LEGACY_STATUS_MAP: Dict[str, BookingStatus] = {
    "confirmed": S.ACCEPTED,
    "canceled": S.CANCELED_CUSTOMER,
    "cancelled": S.CANCELED_CUSTOMER,
}

# (from, to) -> actors allowed to trigger it
TRANSITIONS: Dict[Tuple[BookingStatus, BookingStatus], FrozenSet[Actor]] = {
    (S.PENDING, S.ACCEPTED): frozenset({Actor.PROVIDER}),
    (S.PENDING, S.DECLINED): frozenset({Actor.PROVIDER}),
    (S.PENDING, S.CANCELED_CUSTOMER): frozenset({Actor.CUSTOMER}),
    (S.ACCEPTED, S.PAID): frozenset({Actor.PAYMENT}),
    (S.ACCEPTED, S.CANCELED_CUSTOMER): frozenset({Actor.CUSTOMER}),
    (S.ACCEPTED, S.CANCELED_PROVIDER): frozenset({Actor.PROVIDER}),
    (S.PAID, S.COMPLETED_BY_PROVIDER): frozenset({Actor.PROVIDER}),
    (S.PAID, S.COMPLETED): frozenset({Actor.ADMIN}),
    (S.COMPLETED_BY_PROVIDER, S.COMPLETED): frozenset({Actor.CUSTOMER}),
    (S.PAID, S.DISPUTED): frozenset({Actor.ADMIN, Actor.PAYMENT}),
    (S.COMPLETED, S.DISPUTED): frozenset({Actor.ADMIN, Actor.PAYMENT}),
    (S.PAID, S.REFUNDED): frozenset({Actor.ADMIN, Actor.PAYMENT}),
    (S.COMPLETED, S.REFUNDED): frozenset({Actor.ADMIN, Actor.PAYMENT}),
}

# Transitions that need free text from the actor
REASON_REQUIRED: FrozenSet[Tuple[BookingStatus, BookingStatus]] = frozenset({
    (S.PENDING, S.DECLINED),
    (S.PENDING, S.CANCELED_CUSTOMER),
    (S.ACCEPTED, S.CANCELED_CUSTOMER),
    (S.ACCEPTED, S.CANCELED_PROVIDER),
})

TERMINAL_STATUSES: FrozenSet[BookingStatus] = frozenset({
    S.DECLINED, S.CANCELED_CUSTOMER, S.CANCELED_PROVIDER, S.COMPLETED, S.REFUNDED,
})

# States in which money has been captured
PAID_STATUSES: FrozenSet[BookingStatus] = frozenset({
    S.PAID, S.COMPLETED_BY_PROVIDER, S.COMPLETED, S.DISPUTED, S.REFUNDED,
})

ACTION_TARGETS: Dict[Tuple[Actor, BookingAction], BookingStatus] = {
    (Actor.PROVIDER, BookingAction.ACCEPT): S.ACCEPTED,
    (Actor.PROVIDER, BookingAction.DECLINE): S.DECLINED,
    (Actor.PROVIDER, BookingAction.CANCEL): S.CANCELED_PROVIDER,
    (Actor.PROVIDER, BookingAction.MARK_COMPLETED): S.COMPLETED_BY_PROVIDER,
    (Actor.CUSTOMER, BookingAction.CANCEL): S.CANCELED_CUSTOMER,
    (Actor.CUSTOMER, BookingAction.CONFIRM_COMPLETION): S.COMPLETED,
    # The customer initiates payment; the transition itself is applied by the payment actor
    (Actor.CUSTOMER, BookingAction.PAY): S.PAID,
}

# Display order of action buttons
ACTION_ORDER: List[BookingAction] = [
    BookingAction.PAY,
    BookingAction.ACCEPT,
    BookingAction.MARK_COMPLETED,
    BookingAction.CONFIRM_COMPLETION,
    BookingAction.REVIEW,
    BookingAction.DECLINE,
    BookingAction.CANCEL,
]


def normalize_status(status: Union[str, BookingStatus]) -> BookingStatus:
    """Map stored/legacy values onto the canonical vocabulary; unknown values raise."""
    if isinstance(status, BookingStatus):
        return status
    value = str(status).strip().lower()
    if value in LEGACY_STATUS_MAP:
        return LEGACY_STATUS_MAP[value]
    try:
        return BookingStatus(value)
    except ValueError:
        raise InvalidTransition(value, "", message=f"Unknown booking status: {status}")


def try_normalize_status(status) -> Optional[BookingStatus]:
    try:
        return normalize_status(status)
    except InvalidTransition:
        return None


def allowed_transitions(current, actor: Optional[Actor] = None) -> List[BookingStatus]:
    current = normalize_status(current)
    return [
        target for (source, target), actors in TRANSITIONS.items()
        if source == current and (actor is None or actor in actors)
    ]


def can_transition(current, target, actor: Optional[Actor] = None) -> bool:
    current_status = try_normalize_status(current)
    target_status = try_normalize_status(target)
    if current_status is None or target_status is None:
        return False
    actors = TRANSITIONS.get((current_status, target_status))
    if actors is None:
        return False
    return actor is None or actor in actors


def requires_reason(current, target) -> bool:
    return (normalize_status(current), normalize_status(target)) in REASON_REQUIRED


def action_requires_reason(action: BookingAction) -> bool:
    return action in (BookingAction.DECLINE, BookingAction.CANCEL)


def assert_transition(current, target, actor: Optional[Actor] = None, reason: Optional[str] = None) -> BookingStatus:
    """
    Validate a single status change.

    Raises:
        InvalidTransition: the (current, target, actor) triple is not in TRANSITIONS
        ValidationFailure: a reason-required transition has no reason text
    """
    current_status = normalize_status(current)
    target_status = normalize_status(target)

    if not can_transition(current_status, target_status, actor):
        allowed = [s.value for s in allowed_transitions(current_status, actor)]
        raise InvalidTransition(current_status.value, target_status.value, allowed)

    if (current_status, target_status) in REASON_REQUIRED and not (reason or "").strip():
        raise ValidationFailure("A reason is required for this action")

    return target_status


def target_for_action(actor: Actor, action: BookingAction) -> BookingStatus:
    target = ACTION_TARGETS.get((actor, action))
    if target is None:
        raise InvalidTransition("", action.value, message=f"Action '{action.value}' is not available to {actor.value}")
    return target


def available_actions(status, actor: Actor, has_review: bool = False) -> List[BookingAction]:
    """
    Actions a view may render for this booking.

    Exactly the actions whose transition is legal from `status`; `pay` counts
    as legal when accepted -> paid is, since the customer starts it.
    Unknown statuses get no actions.
    """
    current = try_normalize_status(status)
    if current is None:
        return []

    actions = []
    for action in ACTION_ORDER:
        if action == BookingAction.REVIEW:
            if actor == Actor.CUSTOMER and current == S.COMPLETED and not has_review:
                actions.append(action)
            continue

        target = ACTION_TARGETS.get((actor, action))
        if target is None:
            continue
        applying_actor = Actor.PAYMENT if action == BookingAction.PAY else actor
        if can_transition(current, target, applying_actor):
            actions.append(action)
    return actions


# ------------------------------------------------------------------------------------------------------#
#                                       Amount resolution                                               #
# ------------------------------------------------------------------------------------------------------#

def resolve_amount(provider_quoted_price: Optional[int], price_at_booking: int) -> int:
    """Amount to charge/display: a positive provider quote wins over the booking price."""
    if provider_quoted_price is not None and provider_quoted_price > 0:
        return provider_quoted_price
    return price_at_booking


def format_price(cents: Optional[int], currency: str = "NZD") -> str:
    """5000 -> 'NZD $50.00'"""
    value = (cents or 0) / 100
    sign = "-" if value < 0 else ""
    return f"{currency.upper()} {sign}${abs(value):,.2f}"


# ------------------------------------------------------------------------------------------------------#
#                                       Presentation                                                    #
# ------------------------------------------------------------------------------------------------------#

STATUS_LABELS: Dict[BookingStatus, str] = {
    S.PENDING: "Pending",
    S.ACCEPTED: "Accepted",
    S.DECLINED: "Declined",
    S.PAID: "Paid",
    S.COMPLETED_BY_PROVIDER: "Awaiting confirmation",
    S.COMPLETED: "Completed",
    S.CANCELED_CUSTOMER: "Canceled by customer",
    S.CANCELED_PROVIDER: "Canceled by provider",
    S.DISPUTED: "Disputed",
    S.REFUNDED: "Refunded",
}

STATUS_VARIANTS: Dict[BookingStatus, str] = {
    S.PAID: "default",
    S.COMPLETED: "default",
    S.COMPLETED_BY_PROVIDER: "default",
    S.ACCEPTED: "secondary",
    S.PENDING: "outline",
    S.DECLINED: "destructive",
    S.CANCELED_CUSTOMER: "destructive",
    S.CANCELED_PROVIDER: "destructive",
    S.DISPUTED: "secondary",
    S.REFUNDED: "secondary",
}

CUSTOMER_HINTS: Dict[BookingStatus, str] = {
    S.PENDING: "Waiting for the provider to respond.",
    S.ACCEPTED: "Accepted. Pay now to confirm your booking.",
    S.DECLINED: "The provider declined this request.",
    S.PAID: "Payment received. The provider will complete the job.",
    S.COMPLETED_BY_PROVIDER: "The provider marked this job done. Please confirm completion.",
    S.COMPLETED: "Job complete. Leave a review to help others.",
    S.CANCELED_CUSTOMER: "You canceled this booking.",
    S.CANCELED_PROVIDER: "The provider canceled this booking.",
    S.DISPUTED: "This booking is under review.",
    S.REFUNDED: "This booking was refunded.",
}

PROVIDER_HINTS: Dict[BookingStatus, str] = {
    S.PENDING: "New request. Accept or decline.",
    S.ACCEPTED: "Waiting for the customer to pay.",
    S.DECLINED: "You declined this request.",
    S.PAID: "Paid. Mark the job completed when done.",
    S.COMPLETED_BY_PROVIDER: "Waiting for the customer to confirm completion.",
    S.COMPLETED: "Completed. Payout released.",
    S.CANCELED_CUSTOMER: "The customer canceled this booking.",
    S.CANCELED_PROVIDER: "You canceled this booking.",
    S.DISPUTED: "Disputed. Payout is frozen.",
    S.REFUNDED: "Refunded to the customer.",
}


def status_label(status) -> str:
    current = try_normalize_status(status)
    if current is None:
        return "Other"
    return STATUS_LABELS[current]


def status_badge_variant(status) -> str:
    current = try_normalize_status(status)
    if current is None:
        return "secondary"
    return STATUS_VARIANTS.get(current, "secondary")


def next_step_hint(status, actor: Actor = Actor.CUSTOMER) -> str:
    current = try_normalize_status(status)
    if current is None:
        return "Check back later for updates."
    hints = PROVIDER_HINTS if actor == Actor.PROVIDER else CUSTOMER_HINTS
    return hints[current]
