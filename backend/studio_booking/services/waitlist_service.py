"""
Per-class waitlist queue.

Positions are 1-based, dense and unique within a class. Every mutation
(enqueue, dequeue, remove, requeue) must run while the caller holds the class
row lock from capacity_service.lock_class, which makes the
read-max-then-insert of enqueue and the shift of compaction atomic.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.exceptions import AlreadyQueued, NotFound
from studio_booking.core.logging import get_logger
from studio_booking.core.metrics import record_waitlist_operation
from studio_booking.models.class_instance import ClassInstance, ClassStatus
from studio_booking.models.waitlist import WaitlistEntry

logger = get_logger(__name__)


async def get_entry(db: AsyncSession, class_id: int, user_id: int) -> Optional[WaitlistEntry]:
    result = await db.execute(
        select(WaitlistEntry).where(
            WaitlistEntry.class_id == class_id,
            WaitlistEntry.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def queue_length(db: AsyncSession, class_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(WaitlistEntry).where(WaitlistEntry.class_id == class_id)
    )
    return result.scalar_one()


async def enqueue(db: AsyncSession, class_id: int, user_id: int) -> WaitlistEntry:
    """Append a user at max(position) + 1, or 1 if the queue is empty."""
    existing = await get_entry(db, class_id, user_id)
    if existing is not None:
        raise AlreadyQueued(
            f"Already on the waitlist at position #{existing.position}",
            details={"class_id": class_id, "position": existing.position},
        )

    result = await db.execute(
        select(func.coalesce(func.max(WaitlistEntry.position), 0)).where(
            WaitlistEntry.class_id == class_id
        )
    )
    entry = WaitlistEntry(class_id=class_id, user_id=user_id, position=result.scalar_one() + 1)
    db.add(entry)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise AlreadyQueued(details={"class_id": class_id}) from exc

    record_waitlist_operation("enqueue")
    logger.info("waitlist_joined", class_id=class_id, user_id=user_id, position=entry.position)
    return entry


async def _compact_after(db: AsyncSession, class_id: int, position: int) -> None:
    await db.execute(
        update(WaitlistEntry)
        .where(WaitlistEntry.class_id == class_id, WaitlistEntry.position > position)
        .values(position=WaitlistEntry.position - 1)
    )


async def _delete_and_compact(db: AsyncSession, entry: WaitlistEntry) -> None:
    await db.delete(entry)
    await db.flush()
    await _compact_after(db, entry.class_id, entry.position)


async def dequeue_front(db: AsyncSession, class_id: int) -> Optional[WaitlistEntry]:
    """Remove and return the position-1 entry; everyone behind moves up one."""
    result = await db.execute(
        select(WaitlistEntry)
        .where(WaitlistEntry.class_id == class_id)
        .order_by(WaitlistEntry.position.asc())
        .limit(1)
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        return None

    await _delete_and_compact(db, entry)
    record_waitlist_operation("dequeue")
    logger.info("waitlist_dequeued", class_id=class_id, user_id=entry.user_id)
    return entry


async def remove(db: AsyncSession, class_id: int, user_id: int) -> WaitlistEntry:
    """Withdraw an arbitrary entry and compact the positions behind it."""
    entry = await get_entry(db, class_id, user_id)
    if entry is None:
        raise NotFound(
            "You are not on the waitlist for this class",
            details={"class_id": class_id, "user_id": user_id},
        )

    await _delete_and_compact(db, entry)
    record_waitlist_operation("remove")
    logger.info("waitlist_left", class_id=class_id, user_id=user_id, position=entry.position)
    return entry


async def requeue_front(db: AsyncSession, class_id: int, user_id: int) -> WaitlistEntry:
    """Put a dequeued user back at position 1 when their promotion could not complete."""
    await db.execute(
        update(WaitlistEntry)
        .where(WaitlistEntry.class_id == class_id)
        .values(position=WaitlistEntry.position + 1)
    )
    entry = WaitlistEntry(class_id=class_id, user_id=user_id, position=1)
    db.add(entry)
    await db.flush()
    logger.info("waitlist_requeued", class_id=class_id, user_id=user_id)
    return entry


async def clear_class(db: AsyncSession, class_id: int) -> int:
    result = await db.execute(delete(WaitlistEntry).where(WaitlistEntry.class_id == class_id))
    return result.rowcount or 0


async def list_for_class(db: AsyncSession, class_id: int) -> list[WaitlistEntry]:
    result = await db.execute(
        select(WaitlistEntry)
        .where(WaitlistEntry.class_id == class_id)
        .order_by(WaitlistEntry.position.asc())
    )
    return list(result.scalars().all())


async def list_for_user(db: AsyncSession, user_id: int, now: datetime) -> list[WaitlistEntry]:
    """Entries for scheduled classes that have not started; expired ones await the sweep."""
    result = await db.execute(
        select(WaitlistEntry)
        .join(ClassInstance, ClassInstance.id == WaitlistEntry.class_id)
        .where(
            WaitlistEntry.user_id == user_id,
            ClassInstance.status == ClassStatus.SCHEDULED.value,
            ClassInstance.starts_at > now,
        )
        .order_by(ClassInstance.starts_at.asc())
    )
    return list(result.scalars().all())
