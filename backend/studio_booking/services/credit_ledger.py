"""
Credit ledger: class credits remaining on a subscription.

Debits and refunds are single conditional UPDATE statements executed inside
the caller's unit of work. They never commit on their own, so a credit change
and the booking change it pays for succeed or roll back together.

    UPDATE subscriptions SET remaining_credits = remaining_credits - 1
    WHERE id = :id AND status = 'active' AND end_date >= :today
      AND remaining_credits > 0

If no row matches, the debit fails and the balance is untouched; the CHECK
constraint on remaining_credits is the final safety net against underflow.
"""

from datetime import date
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.exceptions import InsufficientCredit, InvalidRequest, NotFound
from studio_booking.core.logging import get_logger
from studio_booking.core.metrics import record_credit_operation
from studio_booking.models.class_instance import ClassInstance
from studio_booking.models.subscription import (
    Category,
    EquipmentAccess,
    Subscription,
    SubscriptionStatus,
)

logger = get_logger(__name__)


async def find_active_subscription(
    db: AsyncSession, user_id: int, today: date
) -> Optional[Subscription]:
    """Newest active, unexpired subscription of a user."""
    result = await db.execute(
        select(Subscription)
        .where(
            Subscription.user_id == user_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.end_date >= today,
        )
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


def is_compatible(subscription: Subscription, class_: ClassInstance) -> tuple[bool, Optional[str]]:
    """
    Check whether a subscription may book a class.

    Personal subscriptions only book personal sessions and personal sessions
    only accept personal subscriptions. Equipment access must cover the
    class equipment unless the subscription grants both.
    """
    personal_subscription = subscription.category == Category.PERSONAL.value
    personal_class = class_.category == Category.PERSONAL.value
    if personal_subscription and not personal_class:
        return False, "personal_subscription_requires_personal_class"
    if personal_class and not personal_subscription:
        return False, "personal_class_requires_personal_subscription"

    access = subscription.equipment_access
    if access != EquipmentAccess.BOTH.value and access != class_.equipment_type:
        return False, "equipment_not_included"

    return True, None


async def balance(db: AsyncSession, subscription_id: int) -> int:
    result = await db.execute(
        select(Subscription.remaining_credits).where(Subscription.id == subscription_id)
    )
    remaining = result.scalar_one_or_none()
    if remaining is None:
        raise NotFound(
            f"Subscription {subscription_id} not found",
            details={"subscription_id": subscription_id},
        )
    return remaining


async def debit(db: AsyncSession, subscription_id: int, today: date) -> int:
    """Consume one credit. Returns the new balance or raises InsufficientCredit."""
    result = await db.execute(
        update(Subscription)
        .where(
            Subscription.id == subscription_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.end_date >= today,
            Subscription.remaining_credits > 0,
        )
        .values(remaining_credits=Subscription.remaining_credits - 1)
    )

    if result.rowcount == 0:
        record_credit_operation("debit", ok=False)
        logger.info("credit_debit_rejected", subscription_id=subscription_id)
        raise InsufficientCredit(details={"subscription_id": subscription_id})

    new_balance = await balance(db, subscription_id)
    record_credit_operation("debit", ok=True)
    logger.info("credit_debited", subscription_id=subscription_id, balance=new_balance)
    return new_balance


async def credit(db: AsyncSession, subscription_id: int) -> int:
    """Refund one credit, regardless of subscription status. Returns the new balance."""
    result = await db.execute(
        update(Subscription)
        .where(Subscription.id == subscription_id)
        .values(remaining_credits=Subscription.remaining_credits + 1)
    )

    if result.rowcount == 0:
        raise NotFound(
            f"Subscription {subscription_id} not found",
            details={"subscription_id": subscription_id},
        )

    new_balance = await balance(db, subscription_id)
    record_credit_operation("credit", ok=True)
    logger.info("credit_refunded", subscription_id=subscription_id, balance=new_balance)
    return new_balance


async def adjust(db: AsyncSession, subscription_id: int, delta: int) -> int:
    """
    Staff correction of a balance by ``delta`` credits, positive or negative.

    Only active subscriptions are adjusted. A removal larger than the balance
    is rejected and leaves the balance unchanged.
    """
    result = await db.execute(
        update(Subscription)
        .where(
            Subscription.id == subscription_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.remaining_credits + delta >= 0,
        )
        .values(remaining_credits=Subscription.remaining_credits + delta)
    )

    if result.rowcount == 0:
        record_credit_operation("adjust", ok=False)
        subscription = await db.get(Subscription, subscription_id, populate_existing=True)
        if subscription is None:
            raise NotFound(
                f"Subscription {subscription_id} not found",
                details={"subscription_id": subscription_id},
            )
        if subscription.status != SubscriptionStatus.ACTIVE.value:
            raise InvalidRequest(
                "Credits can only be adjusted on active subscriptions",
                details={"subscription_id": subscription_id, "status": subscription.status},
            )
        raise InsufficientCredit(
            f"Cannot remove {-delta} credits, only {subscription.remaining_credits} remaining",
            details={
                "subscription_id": subscription_id,
                "remaining_credits": subscription.remaining_credits,
            },
        )

    new_balance = await balance(db, subscription_id)
    record_credit_operation("adjust", ok=True)
    logger.info("credit_adjusted", subscription_id=subscription_id, delta=delta, balance=new_balance)
    return new_balance
