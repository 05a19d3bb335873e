"""
Periodic maintenance sweep.

  1. scheduled classes that ended more than SWEEP_GRACE_HOURS ago:
       waitlist deleted, remaining CONFIRMED bookings closed as ATTENDED,
       class marked completed
  2. waitlist entries left behind on cancelled/completed classes are purged
  3. active subscriptions past their end_date are expired

A failed run is logged and counted; the next scheduled run picks up the work.
Nothing here is retried within a run.
"""

import asyncio
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.config import get_settings
from studio_booking.core.logging import get_logger
from studio_booking.core.metrics import record_sweep
from studio_booking.db.base import utcnow
from studio_booking.db.session import unit_of_work
from studio_booking.models.booking import Booking, BookingStatus
from studio_booking.models.class_instance import ClassInstance, ClassStatus
from studio_booking.models.subscription import Subscription, SubscriptionStatus
from studio_booking.models.waitlist import WaitlistEntry
from studio_booking.services import waitlist_service
from studio_booking.services.cache_service import invalidate_class_cache

logger = get_logger(__name__)


@dataclass
class SweepReport:
    classes_closed: int = 0
    bookings_closed: int = 0
    waitlist_entries_removed: int = 0
    subscriptions_expired: int = 0


@unit_of_work
async def sweep(db: AsyncSession, *, now: Optional[datetime] = None) -> SweepReport:
    now = now or utcnow()
    cutoff = now - timedelta(hours=get_settings().SWEEP_GRACE_HOURS)
    report = SweepReport()

    result = await db.execute(
        select(ClassInstance)
        .where(
            ClassInstance.status == ClassStatus.SCHEDULED.value,
            ClassInstance.starts_at < cutoff,
        )
        .with_for_update()
    )
    for class_ in result.scalars().all():
        report.waitlist_entries_removed += await waitlist_service.clear_class(db, class_.id)
        closed = await db.execute(
            update(Booking)
            .where(
                Booking.class_id == class_.id,
                Booking.status == BookingStatus.CONFIRMED.value,
            )
            .values(status=BookingStatus.ATTENDED.value, checked_in_at=class_.starts_at)
        )
        report.bookings_closed += closed.rowcount or 0
        class_.status = ClassStatus.COMPLETED.value
        report.classes_closed += 1

    inactive_classes = select(ClassInstance.id).where(
        ClassInstance.status != ClassStatus.SCHEDULED.value
    )
    purged = await db.execute(
        delete(WaitlistEntry).where(WaitlistEntry.class_id.in_(inactive_classes))
    )
    report.waitlist_entries_removed += purged.rowcount or 0

    expired = await db.execute(
        update(Subscription)
        .where(
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.end_date < now.date(),
        )
        .values(status=SubscriptionStatus.EXPIRED.value)
    )
    report.subscriptions_expired = expired.rowcount or 0

    await db.commit()
    logger.info("sweep_completed", **asdict(report))
    return report


async def run_sweep(
    session_factory: Callable[[], AsyncSession], *, now: Optional[datetime] = None
) -> Optional[SweepReport]:
    """One sweep in its own session. Failures are logged, never raised."""
    try:
        async with session_factory() as db:
            report = await sweep(db, now=now)
    except Exception as exc:
        record_sweep(ok=False)
        logger.error("sweep_failed", error=str(exc), error_type=type(exc).__name__)
        return None

    record_sweep(ok=True)
    if report.classes_closed:
        await invalidate_class_cache()
    return report


async def sweep_forever(session_factory: Callable[[], AsyncSession], interval: float) -> None:
    """Background loop started from the app lifespan; cancelled on shutdown."""
    logger.info("sweep_loop_started", interval_seconds=interval)
    while True:
        await run_sweep(session_factory)
        await asyncio.sleep(interval)
