"""
Pydantic schemas for class-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from studio_booking.models.class_instance import EquipmentType
from studio_booking.models.subscription import Category


class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: Category = Category.GROUP
    equipment_type: EquipmentType = EquipmentType.MAT
    instructor_id: Optional[int] = None
    starts_at: datetime
    duration_minutes: int = Field(default=50, gt=0, le=480)
    capacity: int = Field(..., gt=0, le=1000)


class ClassResponse(BaseModel):
    id: int
    name: str
    category: str
    equipment_type: str
    instructor_id: Optional[int]
    starts_at: datetime
    duration_minutes: int
    capacity: int
    available_seats: int
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ClassListResponse(BaseModel):
    classes: list[ClassResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False


class ClassCancelResponse(BaseModel):
    class_id: int
    status: str
    bookings_cancelled: int
    waitlist_cleared: int
