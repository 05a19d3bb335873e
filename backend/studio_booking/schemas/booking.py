"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from studio_booking.schemas.waitlist import WaitlistEntryResponse


class BookingCreate(BaseModel):
    class_id: int
    # Staff only: book on behalf of a client, optionally past compatibility rules.
    user_id: Optional[int] = None
    override_restrictions: bool = False


class BookingResponse(BaseModel):
    id: int
    user_id: int
    class_id: int
    subscription_id: Optional[int]
    status: str
    checked_in_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingResultResponse(BaseModel):
    outcome: str
    booking: Optional[BookingResponse] = None
    waitlist_entry: Optional[WaitlistEntryResponse] = None
    remaining_credits: Optional[int] = None


class BookingCancelResponse(BaseModel):
    message: str
    booking_id: int
    status: str
    refunded_balance: Optional[int] = None
    promoted_booking_id: Optional[int] = None
    promoted_user_id: Optional[int] = None
