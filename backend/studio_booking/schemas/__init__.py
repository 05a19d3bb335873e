from studio_booking.schemas.waitlist import WaitlistEntryResponse
from studio_booking.schemas.booking import (
    BookingCreate, BookingResponse, BookingResultResponse, BookingCancelResponse,
)
from studio_booking.schemas.class_instance import (
    ClassCreate, ClassResponse, ClassListResponse, ClassCancelResponse,
)
from studio_booking.schemas.subscription import CreditAdjustment, SubscriptionCreate, SubscriptionResponse
from studio_booking.schemas.maintenance import SweepResponse

__all__ = [
    "WaitlistEntryResponse",
    "BookingCreate", "BookingResponse", "BookingResultResponse", "BookingCancelResponse",
    "ClassCreate", "ClassResponse", "ClassListResponse", "ClassCancelResponse",
    "CreditAdjustment", "SubscriptionCreate", "SubscriptionResponse",
    "SweepResponse",
]
