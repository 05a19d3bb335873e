"""
Subscription service: staff issue subscriptions and correct balances, clients read their own.
"""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.exceptions import NotFound
from studio_booking.core.logging import get_logger
from studio_booking.db.session import unit_of_work
from studio_booking.models.subscription import Subscription, SubscriptionStatus
from studio_booking.models.user import User
from studio_booking.schemas.subscription import SubscriptionCreate
from studio_booking.services import credit_ledger

logger = get_logger(__name__)


@unit_of_work
async def create_subscription(db: AsyncSession, data: SubscriptionCreate) -> Subscription:
    """
    Issue a subscription. Only the newest active subscription is ever debited,
    so earlier active ones of the same user are marked cancelled.
    """
    user = await db.get(User, data.user_id)
    if user is None:
        raise NotFound("User not found", details={"user_id": data.user_id})

    replaced = await db.execute(
        update(Subscription)
        .where(
            Subscription.user_id == data.user_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
        )
        .values(status=SubscriptionStatus.CANCELLED.value)
    )

    subscription = Subscription(
        user_id=data.user_id,
        category=data.category.value,
        equipment_access=data.equipment_access.value,
        remaining_credits=data.credits,
        start_date=data.start_date,
        end_date=data.end_date,
        status=SubscriptionStatus.ACTIVE.value,
    )
    db.add(subscription)
    await db.commit()

    logger.info(
        "subscription_created",
        subscription_id=subscription.id,
        user_id=data.user_id,
        credits=data.credits,
        replaced=replaced.rowcount or 0,
    )
    return subscription


@unit_of_work
async def get_user_subscriptions(
    db: AsyncSession, user_id: int, status: Optional[str] = None
) -> list[Subscription]:
    query = select(Subscription).where(Subscription.user_id == user_id)
    if status is not None:
        query = query.where(Subscription.status == status)
    result = await db.execute(query.order_by(Subscription.created_at.desc(), Subscription.id.desc()))
    return list(result.scalars().all())


@unit_of_work
async def adjust_credits(
    db: AsyncSession, subscription_id: int, delta: int, reason: Optional[str] = None
) -> Subscription:
    """Staff top-up or removal of credits on an active subscription."""
    new_balance = await credit_ledger.adjust(db, subscription_id, delta)
    await db.commit()

    logger.info(
        "subscription_credits_adjusted",
        subscription_id=subscription_id,
        delta=delta,
        balance=new_balance,
        reason=reason,
    )
    return await db.get(Subscription, subscription_id, populate_existing=True)
