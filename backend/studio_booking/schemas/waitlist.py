"""
Pydantic schemas for waitlist responses.
"""

from datetime import datetime
from pydantic import BaseModel


class WaitlistEntryResponse(BaseModel):
    id: int
    user_id: int
    class_id: int
    position: int
    created_at: datetime

    model_config = {"from_attributes": True}
