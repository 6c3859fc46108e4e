import pytest

from src.commonUtils.bookingStateUtil import (
    TRANSITIONS,
    ACTION_TARGETS,
    allowed_transitions,
    assert_transition,
    available_actions,
    can_transition,
    format_price,
    next_step_hint,
    normalize_status,
    requires_reason,
    resolve_amount,
    status_badge_variant,
    status_label,
    target_for_action,
)
from src.commonUtils.enumUtils import Actor, BookingAction, BookingStatus
from src.commonUtils.errorUtils import InvalidTransition, ValidationFailure

S = BookingStatus


class TestTransitions:

    def test_provider_accepts_pending(self):
        assert assert_transition("pending", "accepted", Actor.PROVIDER) == S.ACCEPTED

    def test_customer_cannot_accept(self):
        with pytest.raises(InvalidTransition) as exc:
            assert_transition("pending", "accepted", Actor.CUSTOMER)
        assert "canceled_customer" in exc.value.message

    def test_only_payment_actor_marks_paid(self):
        assert can_transition("accepted", "paid", Actor.PAYMENT)
        assert not can_transition("accepted", "paid", Actor.CUSTOMER)
        assert not can_transition("accepted", "paid", Actor.PROVIDER)

    def test_pending_cannot_jump_to_paid(self):
        with pytest.raises(InvalidTransition):
            assert_transition("pending", "paid", Actor.PAYMENT)

    @pytest.mark.parametrize("terminal", ["declined", "canceled_customer", "canceled_provider", "refunded"])
    def test_terminal_statuses_have_no_exits(self, terminal):
        assert allowed_transitions(terminal) == []

    def test_completed_only_leaves_via_dispute_or_refund(self):
        assert set(allowed_transitions("completed")) == {S.DISPUTED, S.REFUNDED}

    def test_admin_can_complete_paid_booking(self):
        assert can_transition("paid", "completed", Actor.ADMIN)
        assert not can_transition("paid", "completed", Actor.CUSTOMER)

    def test_decline_requires_reason(self):
        assert requires_reason("pending", "declined")
        with pytest.raises(ValidationFailure):
            assert_transition("pending", "declined", Actor.PROVIDER, reason="   ")
        assert assert_transition("pending", "declined", Actor.PROVIDER, reason="Fully booked") == S.DECLINED

    def test_customer_cancel_requires_reason(self):
        with pytest.raises(ValidationFailure):
            assert_transition("accepted", "canceled_customer", Actor.CUSTOMER)

    def test_unknown_target_is_rejected(self):
        assert not can_transition("pending", "archived")


class TestLegacyStatuses:

    @pytest.mark.parametrize("legacy,canonical", [
        ("confirmed", S.ACCEPTED),
        ("canceled", S.CANCELED_CUSTOMER),
        ("cancelled", S.CANCELED_CUSTOMER),
        ("  PAID ", S.PAID),
    ])
    def test_normalize(self, legacy, canonical):
        assert normalize_status(legacy) == canonical

    def test_unknown_status_raises(self):
        with pytest.raises(InvalidTransition):
            normalize_status("archived")

    def test_legacy_confirmed_can_be_paid(self):
        assert can_transition("confirmed", "paid", Actor.PAYMENT)


class TestAvailableActions:

    @pytest.mark.parametrize("status", [s.value for s in BookingStatus])
    @pytest.mark.parametrize("actor", [Actor.CUSTOMER, Actor.PROVIDER])
    def test_actions_match_transition_table(self, status, actor):
        actions = [a for a in available_actions(status, actor) if a != BookingAction.REVIEW]

        expected = []
        for (a, action), target in ACTION_TARGETS.items():
            applying = Actor.PAYMENT if action == BookingAction.PAY else actor
            if a == actor and applying in TRANSITIONS.get((S(status), target), frozenset()):
                expected.append(action)

        assert sorted(actions) == sorted(expected)

    def test_customer_accepted_gets_pay_then_cancel(self):
        assert available_actions("accepted", Actor.CUSTOMER) == [BookingAction.PAY, BookingAction.CANCEL]

    def test_provider_pending(self):
        assert available_actions("pending", Actor.PROVIDER) == [BookingAction.ACCEPT, BookingAction.DECLINE]

    def test_review_only_once(self):
        assert BookingAction.REVIEW in available_actions("completed", Actor.CUSTOMER)
        assert BookingAction.REVIEW not in available_actions("completed", Actor.CUSTOMER, has_review=True)
        assert BookingAction.REVIEW not in available_actions("completed", Actor.PROVIDER)

    def test_unknown_status_gets_nothing(self):
        assert available_actions("on_hold", Actor.CUSTOMER) == []

    def test_target_for_unavailable_action(self):
        with pytest.raises(InvalidTransition):
            target_for_action(Actor.CUSTOMER, BookingAction.ACCEPT)


class TestAmounts:

    @pytest.mark.parametrize("quoted,price,expected", [
        (None, 5000, 5000),
        (0, 5000, 5000),
        (-10, 5000, 5000),
        (7500, 5000, 7500),
    ])
    def test_resolve_amount(self, quoted, price, expected):
        assert resolve_amount(quoted, price) == expected

    def test_format_price(self):
        assert format_price(5000) == "NZD $50.00"
        assert format_price(123456) == "NZD $1,234.56"
        assert format_price(None) == "NZD $0.00"


class TestPresentation:

    def test_known_status(self):
        assert status_label("completed_by_provider") == "Awaiting confirmation"
        assert status_badge_variant("declined") == "destructive"

    def test_unknown_status_has_fallbacks(self):
        assert status_label("on_hold") == "Other"
        assert status_badge_variant("on_hold") == "secondary"
        assert next_step_hint("on_hold") == "Check back later for updates."

    def test_hints_differ_per_actor(self):
        assert next_step_hint("accepted", Actor.CUSTOMER) != next_step_hint("accepted", Actor.PROVIDER)
