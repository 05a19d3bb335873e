"""
Booking endpoints: reserve-or-waitlist, cancellation with promotion, check-in.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.api.deps import get_current_user, require_class_manager
from studio_booking.core.exceptions import Forbidden
from studio_booking.core.logging import get_logger
from studio_booking.db.session import get_db
from studio_booking.models.booking import BookingStatus
from studio_booking.models.user import User
from studio_booking.schemas.booking import (
    BookingCancelResponse,
    BookingCreate,
    BookingResponse,
    BookingResultResponse,
)
from studio_booking.schemas.waitlist import WaitlistEntryResponse
from studio_booking.services import booking_service
from studio_booking.services.cache_service import invalidate_class_cache
from studio_booking.services.interfaces.notifier import Notifier
from studio_booking.services.notifier_factory import get_notifier

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingResultResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Book a class.

    Confirms a seat and debits one credit when the class has room, otherwise
    joins the waitlist without consuming a credit. Staff may book on behalf
    of a client and override the subscription compatibility rules.
    """
    target_user_id = booking_data.user_id or user.id
    on_behalf = target_user_id != user.id
    if (on_behalf or booking_data.override_restrictions) and not user.is_staff:
        raise Forbidden("Only staff can book on behalf of others or override restrictions")

    result = await booking_service.request_booking(
        db,
        notifier,
        target_user_id,
        booking_data.class_id,
        override_restrictions=booking_data.override_restrictions,
    )
    await invalidate_class_cache()

    return BookingResultResponse(
        outcome=result.outcome.value,
        booking=BookingResponse.model_validate(result.booking) if result.booking else None,
        waitlist_entry=(
            WaitlistEntryResponse.model_validate(result.waitlist_entry)
            if result.waitlist_entry
            else None
        ),
        remaining_credits=result.remaining_credits,
    )


@router.delete("/{booking_id}", response_model=BookingCancelResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Cancel a booking, refund its credit and promote the head of the waitlist."""
    result = await booking_service.cancel_booking(db, notifier, booking_id, user)
    await invalidate_class_cache()
    return BookingCancelResponse(
        message="Booking cancelled successfully",
        booking_id=result.booking.id,
        status=result.booking.status,
        refunded_balance=result.refunded_balance,
        promoted_booking_id=result.promoted.id if result.promoted else None,
        promoted_user_id=result.promoted.user_id if result.promoted else None,
    )


@router.get("/", response_model=list[BookingResponse])
async def list_user_bookings(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get the authenticated user's bookings, newest class first."""
    return await booking_service.list_bookings(
        db,
        user.id,
        date_from=date_from,
        date_to=date_to,
        status=booking_status.value if booking_status else None,
    )


@router.post("/{booking_id}/attend", response_model=BookingResponse)
async def mark_attended_endpoint(
    booking_id: int,
    user: User = Depends(require_class_manager),
    db: AsyncSession = Depends(get_db),
):
    booking = await booking_service.mark_attended(db, booking_id)
    await invalidate_class_cache()
    return booking


@router.post("/{booking_id}/no-show", response_model=BookingResponse)
async def mark_no_show_endpoint(
    booking_id: int,
    user: User = Depends(require_class_manager),
    db: AsyncSession = Depends(get_db),
):
    booking = await booking_service.mark_no_show(db, booking_id)
    await invalidate_class_cache()
    return booking
