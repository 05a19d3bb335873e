"""Booking state machine."""

import enum

from studio_booking.core.exceptions import InvalidTransition


class BookingState(str, enum.Enum):
    REQUESTED = "requested"
    CONFIRMED = "confirmed"
    WAITLISTED = "waitlisted"
    CANCELLED = "cancelled"
    ATTENDED = "attended"
    NO_SHOW = "no_show"


BOOKING_TRANSITIONS = {
    BookingState.REQUESTED: {BookingState.CONFIRMED, BookingState.WAITLISTED},
    # A waitlisted request becomes confirmed through promotion.
    BookingState.WAITLISTED: {BookingState.CONFIRMED, BookingState.CANCELLED},
    BookingState.CONFIRMED: {BookingState.CANCELLED, BookingState.ATTENDED, BookingState.NO_SHOW},
    BookingState.CANCELLED: set(),
    BookingState.ATTENDED: set(),
    BookingState.NO_SHOW: set(),
}

TERMINAL_STATES = frozenset(state for state, targets in BOOKING_TRANSITIONS.items() if not targets)


def can_transition(current: str, target: str) -> bool:
    try:
        current_state, target_state = BookingState(current), BookingState(target)
    except ValueError:
        return False
    return target_state in BOOKING_TRANSITIONS[current_state]


def assert_transition(current: str, target: str) -> None:
    if not can_transition(current, target):
        current = getattr(current, "value", current)
        target = getattr(target, "value", target)
        raise InvalidTransition(
            f"Invalid booking transition: {current} -> {target}",
            details={"current": current, "target": target},
        )
