"""
Booking state machine: reservation, waitlisting, cancellation and promotion.

REQUEST FLOW
============

  request_booking(user, class)
    1. class must exist, be scheduled and not started
    2. no active booking / waitlist entry for (user, class)
    3. newest active subscription, compatible category/equipment, >= 1 credit
    4. seat available?  reserve_seat (conditional UPDATE) -> debit -> CONFIRMED
       seat gone?       lock class -> enqueue (no credit consumed) -> WAITLISTED

  A lost last-seat race (CapacityRaceLost) is not an error for the caller:
  the request falls through to the waitlist branch.

CANCELLATION & PROMOTION
========================

  cancel_booking(booking)
    lock class row (serializes promotion per class)
    CONFIRMED -> CANCELLED, release seat, refund credit
    loop:
      entry = dequeue_front()
      none left                     -> stop
      user no longer eligible       -> dropped (not re-queued), continue
      eligible                      -> debit, reserve, CONFIRMED, stop

  At most one entry is promoted per cancellation. A dropped user's entry is
  already deleted by the dequeue; they are not moved to the back.

Every operation is one unit of work with a single commit. Notifications are
dispatched only after the commit and their failures never touch booking state.
"""

import time
from dataclasses import dataclass, field
from datetime import date, datetime, time as dt_time, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.config import get_settings
from studio_booking.core.exceptions import (
    AlreadyBooked,
    AlreadyQueued,
    BookingError,
    CancellationWindowClosed,
    CapacityRaceLost,
    ClassAlreadyStarted,
    ClassCancelled,
    Forbidden,
    IncompatibleSubscription,
    InsufficientCredit,
    InvalidTransition,
    NotFound,
)
from studio_booking.core.logging import get_logger
from studio_booking.core.metrics import (
    booking_latency,
    capacity_races_lost,
    record_booking_request,
    record_cancellation,
    record_notification,
    record_promotion,
)
from studio_booking.db.base import utcnow
from studio_booking.db.session import unit_of_work
from studio_booking.domain.booking_state import BookingState, assert_transition
from studio_booking.models.booking import Booking, BookingStatus
from studio_booking.models.class_instance import ClassInstance, ClassStatus
from studio_booking.models.subscription import Subscription
from studio_booking.models.user import User
from studio_booking.models.waitlist import WaitlistEntry
from studio_booking.services import capacity_service, credit_ledger, waitlist_service
from studio_booking.services.interfaces.notifier import NotificationKind, Notifier

logger = get_logger(__name__)


@dataclass
class BookingResult:
    outcome: BookingState
    booking: Optional[Booking] = None
    waitlist_entry: Optional[WaitlistEntry] = None
    remaining_credits: Optional[int] = None


@dataclass
class CancelResult:
    booking: Booking
    refunded_balance: Optional[int] = None
    promoted: Optional[Booking] = None
    skipped_user_ids: list[int] = field(default_factory=list)


@dataclass
class PendingNotification:
    user_id: int
    kind: NotificationKind
    payload: dict[str, Any]


def _notification(
    user_id: int, kind: NotificationKind, class_id: int, now: datetime, **extra: Any
) -> PendingNotification:
    payload = {"class_id": class_id, "timestamp": now.isoformat(), **extra}
    return PendingNotification(user_id=user_id, kind=kind, payload=payload)


async def dispatch(notifier: Notifier, notifications: list[PendingNotification]) -> None:
    """Fire-and-forget delivery after commit. Failures are logged, never raised."""
    for item in notifications:
        try:
            await notifier.notify(item.user_id, item.kind, item.payload)
        except Exception as exc:
            record_notification(item.kind.value, sent=False)
            logger.error(
                "notification_dispatch_failed",
                user_id=item.user_id,
                kind=item.kind.value,
                error=str(exc),
            )


def _ensure_bookable(class_: ClassInstance, now: datetime) -> None:
    if class_.status == ClassStatus.CANCELLED.value:
        raise ClassCancelled(details={"class_id": class_.id})
    if class_.status != ClassStatus.SCHEDULED.value or class_.starts_at <= now:
        raise ClassAlreadyStarted(
            "Cannot book a class that has already started",
            details={"class_id": class_.id, "starts_at": class_.starts_at.isoformat()},
        )


async def _active_booking(db: AsyncSession, user_id: int, class_id: int) -> Optional[Booking]:
    result = await db.execute(
        select(Booking).where(
            Booking.user_id == user_id,
            Booking.class_id == class_id,
            Booking.status != BookingStatus.CANCELLED.value,
        )
    )
    return result.scalar_one_or_none()


async def _insert_confirmed(
    db: AsyncSession, user_id: int, class_id: int, subscription_id: int
) -> Booking:
    booking = Booking(
        user_id=user_id,
        class_id=class_id,
        subscription_id=subscription_id,
        status=BookingStatus.CONFIRMED.value,
    )
    db.add(booking)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise AlreadyBooked(details={"class_id": class_id, "user_id": user_id}) from exc
    return booking


async def _try_confirm(
    db: AsyncSession,
    user_id: int,
    class_: ClassInstance,
    subscription: Subscription,
    today: date,
) -> Optional[tuple[Booking, int]]:
    """Reserve a seat and debit a credit. Returns None if the last seat was lost."""
    try:
        await capacity_service.reserve_seat(db, class_.id)
    except CapacityRaceLost:
        capacity_races_lost.inc()
        logger.info("capacity_race_lost", class_id=class_.id, user_id=user_id)
        return None

    new_balance = await credit_ledger.debit(db, subscription.id, today)
    booking = await _insert_confirmed(db, user_id, class_.id, subscription.id)
    return booking, new_balance


async def _request_booking(
    db: AsyncSession,
    notifier: Notifier,
    user_id: int,
    class_id: int,
    override_restrictions: bool,
    now: datetime,
) -> BookingResult:
    class_ = await capacity_service.get_class(db, class_id)
    _ensure_bookable(class_, now)

    if await _active_booking(db, user_id, class_id) is not None:
        raise AlreadyBooked(details={"class_id": class_id})

    queued = await waitlist_service.get_entry(db, class_id, user_id)
    if queued is not None:
        raise AlreadyQueued(
            f"Already on the waitlist at position #{queued.position}",
            details={"class_id": class_id, "position": queued.position},
        )

    subscription = await credit_ledger.find_active_subscription(db, user_id, now.date())
    if subscription is None:
        raise InsufficientCredit(
            "You need an active subscription to book classes",
            details={"reason": "no_active_subscription"},
        )

    if not override_restrictions:
        compatible, reason = credit_ledger.is_compatible(subscription, class_)
        if not compatible:
            raise IncompatibleSubscription(
                details={
                    "reason": reason,
                    "subscription_category": subscription.category,
                    "class_category": class_.category,
                    "equipment_access": subscription.equipment_access,
                    "class_equipment": class_.equipment_type,
                }
            )

    if subscription.remaining_credits < 1:
        raise InsufficientCredit(
            "No remaining classes on your subscription",
            details={"subscription_id": subscription.id, "remaining_credits": 0},
        )

    confirmed = None
    if await capacity_service.available_seats(db, class_id) > 0:
        confirmed = await _try_confirm(db, user_id, class_, subscription, now.date())

    if confirmed is None:
        await capacity_service.lock_class(db, class_id)
        # A concurrent request by the same user may have taken the seat since the first check.
        if await _active_booking(db, user_id, class_id) is not None:
            raise AlreadyBooked(details={"class_id": class_id})
        # A seat may have been freed with nobody waiting for it.
        if (
            await capacity_service.available_seats(db, class_id) > 0
            and await waitlist_service.queue_length(db, class_id) == 0
        ):
            confirmed = await _try_confirm(db, user_id, class_, subscription, now.date())

    if confirmed is not None:
        booking, new_balance = confirmed
        await db.commit()
        logger.info(
            "booking_confirmed",
            booking_id=booking.id,
            user_id=user_id,
            class_id=class_id,
            balance=new_balance,
        )
        await dispatch(
            notifier,
            [_notification(user_id, NotificationKind.CONFIRMED, class_id, now, booking_id=booking.id)],
        )
        return BookingResult(
            outcome=BookingState.CONFIRMED,
            booking=booking,
            remaining_credits=new_balance,
        )

    entry = await waitlist_service.enqueue(db, class_id, user_id)
    await db.commit()
    logger.info("booking_waitlisted", user_id=user_id, class_id=class_id, position=entry.position)
    await dispatch(
        notifier,
        [_notification(user_id, NotificationKind.WAITLISTED, class_id, now, position=entry.position)],
    )
    return BookingResult(
        outcome=BookingState.WAITLISTED,
        waitlist_entry=entry,
        remaining_credits=subscription.remaining_credits,
    )


@unit_of_work
async def request_booking(
    db: AsyncSession,
    notifier: Notifier,
    user_id: int,
    class_id: int,
    *,
    override_restrictions: bool = False,
    now: Optional[datetime] = None,
) -> BookingResult:
    """
    Reserve a seat or join the waitlist.
    Safe to call again after any failure: failed attempts leave no state behind.
    """
    now = now or utcnow()
    start = time.perf_counter()
    try:
        result = await _request_booking(db, notifier, user_id, class_id, override_restrictions, now)
    except BookingError as exc:
        record_booking_request("rejected")
        logger.info("booking_rejected", user_id=user_id, class_id=class_id, code=exc.code)
        raise
    finally:
        booking_latency.observe(time.perf_counter() - start)

    record_booking_request(result.outcome.value)
    return result


async def _eligible_subscription(
    db: AsyncSession, user_id: int, class_: ClassInstance, now: datetime
) -> Optional[Subscription]:
    if await _active_booking(db, user_id, class_.id) is not None:
        return None
    subscription = await credit_ledger.find_active_subscription(db, user_id, now.date())
    if subscription is None or subscription.remaining_credits < 1:
        return None
    compatible, _ = credit_ledger.is_compatible(subscription, class_)
    return subscription if compatible else None


async def promote_next(
    db: AsyncSession, class_: ClassInstance, now: datetime
) -> tuple[Optional[Booking], list[int]]:
    """
    Fill one freed seat from the waitlist. Caller holds the class lock.

    Returns the promoted booking (or None) and the ids of users dropped from
    the queue because they were no longer eligible.
    """
    skipped: list[int] = []
    if class_.status != ClassStatus.SCHEDULED.value or class_.starts_at <= now:
        return None, skipped

    while True:
        entry = await waitlist_service.dequeue_front(db, class_.id)
        if entry is None:
            record_promotion("exhausted")
            return None, skipped

        subscription = await _eligible_subscription(db, entry.user_id, class_, now)
        if subscription is None:
            skipped.append(entry.user_id)
            record_promotion("skipped")
            logger.info("waitlist_entry_skipped", class_id=class_.id, user_id=entry.user_id)
            continue

        try:
            await credit_ledger.debit(db, subscription.id, now.date())
        except InsufficientCredit:
            skipped.append(entry.user_id)
            record_promotion("skipped")
            logger.info("waitlist_entry_skipped", class_id=class_.id, user_id=entry.user_id)
            continue

        try:
            await capacity_service.reserve_seat(db, class_.id)
        except CapacityRaceLost:
            # The seat went elsewhere; the user keeps the head of the queue.
            await credit_ledger.credit(db, subscription.id)
            await waitlist_service.requeue_front(db, class_.id, entry.user_id)
            record_promotion("exhausted")
            return None, skipped

        booking = await _insert_confirmed(db, entry.user_id, class_.id, subscription.id)
        record_promotion("promoted")
        logger.info(
            "waitlist_promoted",
            class_id=class_.id,
            user_id=entry.user_id,
            booking_id=booking.id,
        )
        return booking, skipped


def _check_cancellation_window(class_: ClassInstance, now: datetime) -> None:
    window = timedelta(hours=get_settings().CANCELLATION_WINDOW_HOURS)
    remaining = class_.starts_at - now
    if remaining < window:
        hours = round(remaining.total_seconds() / 3600, 1)
        raise CancellationWindowClosed(
            f"Cannot cancel less than {get_settings().CANCELLATION_WINDOW_HOURS:g} hours "
            f"before class. Class starts in {hours} hours.",
            details={"class_id": class_.id, "hours_until_start": hours},
        )


@unit_of_work
async def cancel_booking(
    db: AsyncSession,
    notifier: Notifier,
    booking_id: int,
    actor: User,
    *,
    now: Optional[datetime] = None,
) -> CancelResult:
    """Cancel a confirmed booking, refund its credit and promote from the waitlist."""
    now = now or utcnow()

    booking = await db.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found", details={"booking_id": booking_id})
    if not actor.is_staff and booking.user_id != actor.id:
        raise Forbidden("You can only cancel your own bookings")

    class_ = await capacity_service.lock_class(db, booking.class_id)
    await db.refresh(booking)

    if booking.status == BookingStatus.CANCELLED.value:
        raise InvalidTransition(
            "Booking is already cancelled",
            details={"booking_id": booking_id, "current": booking.status, "target": "cancelled"},
        )
    assert_transition(booking.status, BookingState.CANCELLED)
    if not actor.is_staff:
        _check_cancellation_window(class_, now)

    booking.status = BookingStatus.CANCELLED.value
    booking.cancelled_at = now
    await db.flush()
    await capacity_service.release_seat(db, class_.id)

    refunded_balance = None
    if booking.subscription_id is not None:
        refunded_balance = await credit_ledger.credit(db, booking.subscription_id)

    promoted, skipped = await promote_next(db, class_, now)
    await db.commit()

    record_cancellation("staff" if actor.is_staff else "user")
    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        user_id=booking.user_id,
        class_id=class_.id,
        refunded_balance=refunded_balance,
        promoted_user_id=promoted.user_id if promoted else None,
        skipped=len(skipped),
    )

    notifications = [
        _notification(booking.user_id, NotificationKind.CANCELLED, class_.id, now, booking_id=booking.id)
    ]
    if promoted is not None:
        notifications.append(
            _notification(
                promoted.user_id, NotificationKind.PROMOTED, class_.id, now, booking_id=promoted.id
            )
        )
    await dispatch(notifier, notifications)

    return CancelResult(
        booking=booking,
        refunded_balance=refunded_balance,
        promoted=promoted,
        skipped_user_ids=skipped,
    )


async def _close_booking(
    db: AsyncSession, booking_id: int, target: BookingState, now: datetime
) -> Booking:
    booking = await db.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found", details={"booking_id": booking_id})

    assert_transition(booking.status, target)
    booking.status = target.value
    if target == BookingState.ATTENDED:
        booking.checked_in_at = now
    await db.commit()

    logger.info("booking_closed", booking_id=booking.id, status=booking.status)
    return booking


@unit_of_work
async def mark_attended(db: AsyncSession, booking_id: int, *, now: Optional[datetime] = None) -> Booking:
    """Check a client in. The credit stays consumed."""
    return await _close_booking(db, booking_id, BookingState.ATTENDED, now or utcnow())


@unit_of_work
async def mark_no_show(db: AsyncSession, booking_id: int, *, now: Optional[datetime] = None) -> Booking:
    return await _close_booking(db, booking_id, BookingState.NO_SHOW, now or utcnow())


@unit_of_work
async def list_bookings(
    db: AsyncSession,
    user_id: int,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    status: Optional[str] = None,
) -> list[Booking]:
    """Bookings of a user, newest class first, filtered by class date and status."""
    query = (
        select(Booking)
        .join(ClassInstance, ClassInstance.id == Booking.class_id)
        .where(Booking.user_id == user_id)
    )
    if date_from is not None:
        query = query.where(
            ClassInstance.starts_at >= datetime.combine(date_from, dt_time.min, tzinfo=timezone.utc)
        )
    if date_to is not None:
        query = query.where(
            ClassInstance.starts_at
            < datetime.combine(date_to + timedelta(days=1), dt_time.min, tzinfo=timezone.utc)
        )
    if status is not None:
        query = query.where(Booking.status == status)

    result = await db.execute(query.order_by(ClassInstance.starts_at.desc(), Booking.id.desc()))
    return list(result.scalars().all())


@unit_of_work
async def leave_waitlist(db: AsyncSession, user_id: int, class_id: int) -> None:
    """Withdraw from a class waitlist. A second call raises NotFound and changes nothing."""
    await capacity_service.lock_class(db, class_id)
    await waitlist_service.remove(db, class_id, user_id)
    await db.commit()


@unit_of_work
async def list_waitlist(
    db: AsyncSession, user_id: int, *, now: Optional[datetime] = None
) -> list[WaitlistEntry]:
    return await waitlist_service.list_for_user(db, user_id, now or utcnow())
