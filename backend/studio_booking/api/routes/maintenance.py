"""
Operational endpoints for staff.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.api.deps import require_staff
from studio_booking.db.session import get_db
from studio_booking.models.user import User
from studio_booking.schemas.maintenance import SweepResponse
from studio_booking.services import sweep_service
from studio_booking.services.cache_service import invalidate_class_cache

router = APIRouter(prefix="/maintenance", tags=["Maintenance"])


@router.post("/sweep", response_model=SweepResponse)
async def run_sweep_endpoint(
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Run the maintenance sweep now instead of waiting for the next interval."""
    report = await sweep_service.sweep(db)
    if report.classes_closed:
        await invalidate_class_cache()
    return SweepResponse(**asdict(report))
