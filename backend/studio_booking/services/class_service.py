"""
Class service handling schedule management and cascade cancellation.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.exceptions import ClassCancelled, InvalidRequest
from studio_booking.core.logging import get_logger
from studio_booking.core.metrics import record_cancellation
from studio_booking.db.base import utcnow
from studio_booking.db.session import unit_of_work
from studio_booking.models.booking import Booking, BookingStatus
from studio_booking.models.class_instance import ClassInstance, ClassStatus
from studio_booking.schemas.class_instance import ClassCreate
from studio_booking.services import capacity_service, credit_ledger, waitlist_service
from studio_booking.services.booking_service import PendingNotification, dispatch
from studio_booking.services.interfaces.notifier import NotificationKind, Notifier

logger = get_logger(__name__)


@dataclass
class ClassCancelReport:
    class_: ClassInstance
    bookings_cancelled: int
    waitlist_cleared: int


@unit_of_work
async def create_class(
    db: AsyncSession, class_data: ClassCreate, *, now: Optional[datetime] = None
) -> ClassInstance:
    """Create a new class with every seat available."""
    now = now or utcnow()
    if class_data.starts_at <= now:
        raise InvalidRequest(
            "Class start must be in the future",
            details={"starts_at": class_data.starts_at.isoformat()},
        )

    class_ = ClassInstance(
        name=class_data.name,
        category=class_data.category.value,
        equipment_type=class_data.equipment_type.value,
        instructor_id=class_data.instructor_id,
        starts_at=class_data.starts_at,
        duration_minutes=class_data.duration_minutes,
        capacity=class_data.capacity,
        reserved_seats=0,
        status=ClassStatus.SCHEDULED.value,
    )
    db.add(class_)
    await db.commit()

    logger.info("class_created", class_id=class_.id, name=class_.name, capacity=class_.capacity)
    return class_


@unit_of_work
async def get_class_detail(db: AsyncSession, class_id: int) -> tuple[ClassInstance, int]:
    """Get a single class with its live seat availability."""
    class_ = await capacity_service.get_class(db, class_id)
    return class_, await capacity_service.available_seats(db, class_id)


@unit_of_work
async def list_classes(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    upcoming_only: bool = True,
    *,
    now: Optional[datetime] = None,
) -> tuple[list[ClassInstance], int]:
    """
    List classes with pagination.
    Uses the ix_class_instances_status_starts_at index for the upcoming filter.
    """
    query = select(ClassInstance)

    if upcoming_only:
        query = query.where(
            ClassInstance.status == ClassStatus.SCHEDULED.value,
            ClassInstance.starts_at >= (now or utcnow()),
        )

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    classes_query = (
        query
        .order_by(ClassInstance.starts_at.asc(), ClassInstance.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(classes_query)
    return list(result.scalars().all()), total


@unit_of_work
async def cancel_class(
    db: AsyncSession,
    notifier: Notifier,
    class_id: int,
    *,
    now: Optional[datetime] = None,
) -> ClassCancelReport:
    """
    Cancel a class: every confirmed booking is cancelled and refunded, seats
    are released and the waitlist is cleared, all in one unit of work.
    """
    now = now or utcnow()
    class_ = await capacity_service.lock_class(db, class_id)

    if class_.status == ClassStatus.CANCELLED.value:
        raise ClassCancelled("Class is already cancelled", details={"class_id": class_id})
    if class_.status == ClassStatus.COMPLETED.value:
        raise InvalidRequest("Cannot cancel a completed class", details={"class_id": class_id})

    result = await db.execute(
        select(Booking).where(
            Booking.class_id == class_id,
            Booking.status == BookingStatus.CONFIRMED.value,
        )
    )
    bookings = list(result.scalars().all())

    notifications = []
    for booking in bookings:
        booking.status = BookingStatus.CANCELLED.value
        booking.cancelled_at = now
        await db.flush()
        await capacity_service.release_seat(db, class_id)
        if booking.subscription_id is not None:
            await credit_ledger.credit(db, booking.subscription_id)
        notifications.append(
            PendingNotification(
                user_id=booking.user_id,
                kind=NotificationKind.CANCELLED,
                payload={
                    "class_id": class_id,
                    "booking_id": booking.id,
                    "reason": "class_cancelled",
                    "timestamp": now.isoformat(),
                },
            )
        )

    cleared = await waitlist_service.clear_class(db, class_id)
    class_.status = ClassStatus.CANCELLED.value
    await db.commit()

    for _ in bookings:
        record_cancellation("class_cancelled")
    logger.info(
        "class_cancelled",
        class_id=class_id,
        bookings_cancelled=len(bookings),
        waitlist_cleared=cleared,
    )

    await dispatch(notifier, notifications)
    return ClassCancelReport(class_=class_, bookings_cancelled=len(bookings), waitlist_cleared=cleared)


@unit_of_work
async def list_attendees(db: AsyncSession, class_id: int) -> list[Booking]:
    """Confirmed and attended bookings of a class, in booking order."""
    await capacity_service.get_class(db, class_id)
    result = await db.execute(
        select(Booking)
        .where(
            Booking.class_id == class_id,
            Booking.status.in_([BookingStatus.CONFIRMED.value, BookingStatus.ATTENDED.value]),
        )
        .order_by(Booking.created_at.asc(), Booking.id.asc())
    )
    return list(result.scalars().all())


@unit_of_work
async def list_waitlist(db: AsyncSession, class_id: int) -> list:
    await capacity_service.get_class(db, class_id)
    return await waitlist_service.list_for_class(db, class_id)
