"""
Class capacity tracking and the seat-reservation guard.

CONCURRENCY STRATEGY
====================

Problem:
  Two clients request the last seat simultaneously. Both read
  available_seats == 1 and both insert a confirmed booking. Overbooking.

Solution:
  The availability read is only a snapshot. The actual reservation is a
  conditional UPDATE on the class row:

    UPDATE class_instances
    SET reserved_seats = reserved_seats + 1, version = version + 1
    WHERE id = :class_id AND reserved_seats < capacity

  If rows_affected == 0 the race was lost and the caller falls back to the
  waitlist. The CHECK constraint reserved_seats <= capacity is the final
  safety net.

  Waitlist mutations and cancellation-driven promotion additionally take a
  row lock on the class (SELECT ... FOR UPDATE) so that position assignment,
  compaction and "free seat -> dequeue -> confirm" are serialized per class.
"""

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.exceptions import CapacityRaceLost, ClassNotFound
from studio_booking.core.logging import get_logger
from studio_booking.models.booking import Booking, SEAT_HOLDING_STATUSES
from studio_booking.models.class_instance import ClassInstance

logger = get_logger(__name__)


async def get_class(db: AsyncSession, class_id: int) -> ClassInstance:
    result = await db.execute(select(ClassInstance).where(ClassInstance.id == class_id))
    class_ = result.scalar_one_or_none()
    if class_ is None:
        raise ClassNotFound(f"Class {class_id} not found", details={"class_id": class_id})
    return class_


async def lock_class(db: AsyncSession, class_id: int) -> ClassInstance:
    """Take the per-class mutual exclusion lock for the rest of the unit of work."""
    result = await db.execute(
        select(ClassInstance)
        .where(ClassInstance.id == class_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    class_ = result.scalar_one_or_none()
    if class_ is None:
        raise ClassNotFound(f"Class {class_id} not found", details={"class_id": class_id})
    return class_


async def occupied_seats(db: AsyncSession, class_id: int) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Booking)
        .where(Booking.class_id == class_id, Booking.status.in_(SEAT_HOLDING_STATUSES))
    )
    return result.scalar_one()


async def available_seats(db: AsyncSession, class_id: int) -> int:
    """capacity - seat-holding bookings, as a point-in-time snapshot."""
    class_ = await get_class(db, class_id)
    occupied = await occupied_seats(db, class_id)
    return max(class_.capacity - occupied, 0)


async def reserve_seat(db: AsyncSession, class_id: int) -> None:
    result = await db.execute(
        update(ClassInstance)
        .where(
            ClassInstance.id == class_id,
            ClassInstance.reserved_seats < ClassInstance.capacity,
        )
        .values(
            reserved_seats=ClassInstance.reserved_seats + 1,
            version=ClassInstance.version + 1,
        )
    )

    if result.rowcount == 0:
        logger.info("seat_reservation_conflict", class_id=class_id)
        raise CapacityRaceLost(details={"class_id": class_id})


async def release_seat(db: AsyncSession, class_id: int) -> None:
    await db.execute(
        update(ClassInstance)
        .where(ClassInstance.id == class_id, ClassInstance.reserved_seats > 0)
        .values(
            reserved_seats=ClassInstance.reserved_seats - 1,
            version=ClassInstance.version + 1,
        )
    )
