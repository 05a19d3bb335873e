"""
Domain exceptions for the booking core.

Every error carries a stable ``code`` (the error kind the client UI branches
on), a human readable message and a details dict. The API layer renders them
through a single exception handler; services never raise HTTPException.
"""

from typing import Any, Dict, Optional

from fastapi import status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class BookingError(Exception):
    """Base class for all booking domain errors."""

    code: str = "BookingError"
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Booking operation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotAuthenticated(BookingError):
    code = "NotAuthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class Forbidden(BookingError):
    code = "Forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You are not allowed to perform this action"


class NotFound(BookingError):
    code = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class ClassNotFound(BookingError):
    code = "ClassNotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Class not found"


class ClassCancelled(BookingError):
    code = "ClassCancelled"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Class has been cancelled"


class ClassAlreadyStarted(BookingError):
    code = "ClassAlreadyStarted"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Class has already started"


class IncompatibleSubscription(BookingError):
    code = "IncompatibleSubscription"
    status_code = HTTP_422_UNPROCESSABLE
    default_message = "Your subscription does not cover this class"


class InsufficientCredit(BookingError):
    code = "InsufficientCredit"
    status_code = HTTP_422_UNPROCESSABLE
    default_message = "No remaining credits on an active subscription"


class AlreadyBooked(BookingError):
    code = "AlreadyBooked"
    status_code = status.HTTP_409_CONFLICT
    default_message = "You already have a booking for this class"


class AlreadyQueued(BookingError):
    code = "AlreadyQueued"
    status_code = status.HTTP_409_CONFLICT
    default_message = "You are already on the waitlist for this class"


class CapacityRaceLost(BookingError):
    """The seat reservation write found the class full. Callers retry as a waitlist join."""

    code = "CapacityRaceLost"
    status_code = status.HTTP_409_CONFLICT
    default_message = "The last seat was taken by another booking"


class CancellationWindowClosed(BookingError):
    code = "CancellationWindowClosed"
    status_code = HTTP_422_UNPROCESSABLE
    default_message = "Bookings can no longer be cancelled for this class"


class InvalidTransition(BookingError):
    code = "InvalidTransition"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Invalid booking state transition"


class StorageUnavailable(BookingError):
    """Transient storage failure or timeout; safe to retry with backoff."""

    code = "StorageUnavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Booking storage is temporarily unavailable, please retry"


class InvalidRequest(BookingError):
    code = "InvalidRequest"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"
