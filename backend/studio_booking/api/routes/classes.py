"""
Class endpoints with Redis caching on list operations.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.api.deps import require_class_manager, require_staff
from studio_booking.core.logging import get_logger
from studio_booking.db.session import get_db
from studio_booking.models.class_instance import ClassInstance
from studio_booking.models.user import User
from studio_booking.schemas.booking import BookingResponse
from studio_booking.schemas.class_instance import (
    ClassCancelResponse,
    ClassCreate,
    ClassListResponse,
    ClassResponse,
)
from studio_booking.schemas.waitlist import WaitlistEntryResponse
from studio_booking.services import class_service
from studio_booking.services.cache_service import (
    get_cached_classes,
    invalidate_class_cache,
    set_cached_classes,
)
from studio_booking.services.interfaces.notifier import Notifier
from studio_booking.services.notifier_factory import get_notifier

logger = get_logger(__name__)
router = APIRouter(prefix="/classes", tags=["Classes"])


def _to_response(class_: ClassInstance, available_seats: int) -> ClassResponse:
    fields = {
        name: getattr(class_, name)
        for name in ClassResponse.model_fields
        if name != "available_seats"
    }
    return ClassResponse(**fields, available_seats=available_seats)


@router.post("/", response_model=ClassResponse, status_code=status.HTTP_201_CREATED)
async def create_class_endpoint(
    class_data: ClassCreate,
    user: User = Depends(require_class_manager),
    db: AsyncSession = Depends(get_db),
):
    """Schedule a new class. Instructors and staff only."""
    class_ = await class_service.create_class(db, class_data)
    await invalidate_class_cache()
    return _to_response(class_, class_.capacity)


@router.get("/", response_model=ClassListResponse)
async def list_classes_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    upcoming_only: bool = Query(True),
    db: AsyncSession = Depends(get_db),
):
    """
    List classes with pagination.
    Results are cached in Redis for REDIS_CACHE_TTL seconds and invalidated
    on every booking change.
    """
    cached = await get_cached_classes(page, page_size, upcoming_only)
    if cached:
        logger.info("classes_list_cache_hit", page=page)
        cached["cached"] = True
        return ClassListResponse(**cached)

    classes, total = await class_service.list_classes(db, page, page_size, upcoming_only)

    response_data = {
        "classes": [
            _to_response(c, max(c.capacity - c.reserved_seats, 0)).model_dump() for c in classes
        ],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }
    await set_cached_classes(page, page_size, upcoming_only, response_data)

    return ClassListResponse(**response_data)


@router.get("/{class_id}", response_model=ClassResponse)
async def get_class_endpoint(
    class_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a single class. Not cached (needs real-time seat counts)."""
    class_, available = await class_service.get_class_detail(db, class_id)
    return _to_response(class_, available)


@router.post("/{class_id}/cancel", response_model=ClassCancelResponse)
async def cancel_class_endpoint(
    class_id: int,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Cancel a class, refunding every booked client and clearing the waitlist."""
    report = await class_service.cancel_class(db, notifier, class_id)
    await invalidate_class_cache()
    return ClassCancelResponse(
        class_id=report.class_.id,
        status=report.class_.status,
        bookings_cancelled=report.bookings_cancelled,
        waitlist_cleared=report.waitlist_cleared,
    )


@router.get("/{class_id}/waitlist", response_model=list[WaitlistEntryResponse])
async def class_waitlist_endpoint(
    class_id: int,
    user: User = Depends(require_class_manager),
    db: AsyncSession = Depends(get_db),
):
    return await class_service.list_waitlist(db, class_id)


@router.get("/{class_id}/attendees", response_model=list[BookingResponse])
async def class_attendees_endpoint(
    class_id: int,
    user: User = Depends(require_class_manager),
    db: AsyncSession = Depends(get_db),
):
    return await class_service.list_attendees(db, class_id)
