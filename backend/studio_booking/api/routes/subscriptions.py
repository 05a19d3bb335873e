"""
Subscription endpoints.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.api.deps import get_current_user, require_staff
from studio_booking.db.session import get_db
from studio_booking.models.user import User
from studio_booking.schemas.subscription import (
    CreditAdjustment,
    SubscriptionCreate,
    SubscriptionResponse,
)
from studio_booking.services import subscription_service

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])


@router.post("/", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_subscription_endpoint(
    data: SubscriptionCreate,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Issue a subscription to a client. Replaces the client's current active one."""
    return await subscription_service.create_subscription(db, data)


@router.get("/me", response_model=list[SubscriptionResponse])
async def my_subscriptions(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await subscription_service.get_user_subscriptions(db, user.id)


@router.post("/{subscription_id}/credits", response_model=SubscriptionResponse)
async def adjust_credits_endpoint(
    subscription_id: int,
    data: CreditAdjustment,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Add or remove credits by hand, e.g. a goodwill top-up at reception."""
    return await subscription_service.adjust_credits(db, subscription_id, data.delta, data.reason)
