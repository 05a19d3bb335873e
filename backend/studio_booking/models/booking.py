"""
Booking model linking a user to a class instance.

Key design decisions:
- Partial unique index allows one non-cancelled booking per (user, class)
  while keeping cancelled rows for the audit trail
- subscription_id records which subscription was debited, refunds go back to it
- created_at is audit only; capacity is a set-membership count, not FIFO
"""

import enum

from sqlalchemy import Column, Integer, String, ForeignKey, Index, CheckConstraint, text

from studio_booking.db.base import Base, TimestampMixin, UTCDateTime


class BookingStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    ATTENDED = "attended"
    NO_SHOW = "no_show"


# Statuses that keep holding a seat in the class.
SEAT_HOLDING_STATUSES = (
    BookingStatus.CONFIRMED.value,
    BookingStatus.ATTENDED.value,
    BookingStatus.NO_SHOW.value,
)

_ACTIVE_BOOKING = text("status <> 'cancelled'")


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    class_id = Column(Integer, ForeignKey("class_instances.id"), nullable=False, index=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id"), nullable=True)
    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value)
    checked_in_at = Column(UTCDateTime(), nullable=True)
    cancelled_at = Column(UTCDateTime(), nullable=True)

    __table_args__ = (
        Index(
            "uq_active_booking_user_class",
            "user_id",
            "class_id",
            unique=True,
            postgresql_where=_ACTIVE_BOOKING,
            sqlite_where=_ACTIVE_BOOKING,
        ),
        Index("ix_bookings_class_status", "class_id", "status"),
        CheckConstraint(
            "status IN ('confirmed', 'cancelled', 'attended', 'no_show')",
            name="check_booking_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, class={self.class_id}, status={self.status})>"
