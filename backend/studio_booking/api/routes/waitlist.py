"""
Waitlist endpoints for the authenticated user.
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.api.deps import get_current_user
from studio_booking.db.session import get_db
from studio_booking.models.user import User
from studio_booking.schemas.waitlist import WaitlistEntryResponse
from studio_booking.services import booking_service

router = APIRouter(prefix="/waitlist", tags=["Waitlist"])


@router.get("/", response_model=list[WaitlistEntryResponse])
async def list_my_waitlist(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Waitlist entries for classes that have not started yet."""
    return await booking_service.list_waitlist(db, user.id)


@router.delete("/{class_id}", status_code=status.HTTP_204_NO_CONTENT)
async def leave_waitlist_endpoint(
    class_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await booking_service.leave_waitlist(db, user.id, class_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
