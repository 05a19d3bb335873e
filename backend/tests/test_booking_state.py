import pytest

from studio_booking.core.exceptions import InvalidTransition
from studio_booking.domain.booking_state import (
    BookingState,
    TERMINAL_STATES,
    assert_transition,
    can_transition,
)


@pytest.mark.parametrize(
    "current, target",
    [
        ("requested", "confirmed"),
        ("requested", "waitlisted"),
        ("waitlisted", "confirmed"),
        ("confirmed", "cancelled"),
        ("confirmed", "attended"),
        ("confirmed", "no_show"),
    ],
)
def test_allowed_transitions(current, target):
    assert can_transition(current, target)


@pytest.mark.parametrize(
    "current, target",
    [
        ("cancelled", "confirmed"),
        ("cancelled", "cancelled"),
        ("attended", "cancelled"),
        ("no_show", "attended"),
        ("requested", "attended"),
        ("confirmed", "bogus"),
    ],
)
def test_rejected_transitions(current, target):
    assert not can_transition(current, target)


def test_terminal_states():
    assert TERMINAL_STATES == {BookingState.CANCELLED, BookingState.ATTENDED, BookingState.NO_SHOW}


def test_assert_transition_raises_with_details():
    with pytest.raises(InvalidTransition) as exc_info:
        assert_transition("cancelled", BookingState.CANCELLED)

    assert exc_info.value.details == {"current": "cancelled", "target": "cancelled"}
    assert exc_info.value.code == "InvalidTransition"
