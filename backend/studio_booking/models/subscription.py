"""
Subscription model holding a user's class credits.

Key design decisions:
- remaining_credits is guarded by a CHECK constraint so a debit can never underflow
- category and equipment_access decide which classes the subscription may book
- several rows may exist per user, but only the newest `active` one is used
"""

import enum

from sqlalchemy import Column, Integer, String, Date, ForeignKey, Index, CheckConstraint

from studio_booking.db.base import Base, TimestampMixin


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class Category(str, enum.Enum):
    GROUP = "group"
    PERSONAL = "personal"
    DAYPASS = "daypass"


class EquipmentAccess(str, enum.Enum):
    MAT = "mat"
    REFORMER = "reformer"
    BOTH = "both"


class Subscription(Base, TimestampMixin):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    category = Column(String(20), nullable=False, default=Category.GROUP.value)
    equipment_access = Column(String(20), nullable=False, default=EquipmentAccess.BOTH.value)
    remaining_credits = Column(Integer, nullable=False, default=0)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=SubscriptionStatus.ACTIVE.value)

    __table_args__ = (
        CheckConstraint("remaining_credits >= 0", name="check_remaining_credits_non_negative"),
        CheckConstraint("end_date >= start_date", name="check_subscription_dates"),
        CheckConstraint(
            "status IN ('active', 'cancelled', 'expired')", name="check_subscription_status"
        ),
        CheckConstraint(
            "category IN ('group', 'personal', 'daypass')", name="check_subscription_category"
        ),
        CheckConstraint(
            "equipment_access IN ('mat', 'reformer', 'both')", name="check_subscription_equipment"
        ),
        Index("ix_subscriptions_user_status", "user_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Subscription(id={self.id}, user={self.user_id}, category={self.category}, "
            f"credits={self.remaining_credits}, status={self.status})>"
        )
