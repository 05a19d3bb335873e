"""
Pydantic schemas for subscriptions.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from studio_booking.models.subscription import Category, EquipmentAccess


class SubscriptionCreate(BaseModel):
    user_id: int
    category: Category = Category.GROUP
    equipment_access: EquipmentAccess = EquipmentAccess.BOTH
    credits: int = Field(..., ge=0, le=1000)
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def check_dates(self) -> "SubscriptionCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class SubscriptionResponse(BaseModel):
    id: int
    user_id: int
    category: str
    equipment_access: str
    remaining_credits: int
    start_date: date
    end_date: date
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class CreditAdjustment(BaseModel):
    """Positive delta adds credits, negative removes them."""

    delta: int = Field(..., ge=-100, le=100)
    reason: Optional[str] = Field(None, max_length=255)

    @model_validator(mode="after")
    def check_delta(self) -> "CreditAdjustment":
        if self.delta == 0:
            raise ValueError("delta must not be zero")
        return self
