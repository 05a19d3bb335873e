"""
Scheduled class occurrence with a seat capacity.

Key design decisions:
- `reserved_seats` is the storage-level capacity guard: seat reservations are a
  conditional UPDATE that only succeeds while reserved_seats < capacity
- CHECK constraints are the final safety net against overbooking
- `version` is bumped on every seat change, mirroring optimistic locking
- Index on `starts_at` for schedule listings and the maintenance sweep
"""

import enum

from sqlalchemy import Column, Integer, String, ForeignKey, Index, CheckConstraint

from studio_booking.db.base import Base, TimestampMixin, UTCDateTime


class ClassStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class EquipmentType(str, enum.Enum):
    MAT = "mat"
    REFORMER = "reformer"


class ClassInstance(Base, TimestampMixin):
    __tablename__ = "class_instances"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(20), nullable=False, default="group")
    equipment_type = Column(String(20), nullable=False, default=EquipmentType.MAT.value)
    instructor_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    starts_at = Column(UTCDateTime(), nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=50)
    capacity = Column(Integer, nullable=False)
    reserved_seats = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=ClassStatus.SCHEDULED.value)

    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("capacity > 0", name="check_class_capacity_positive"),
        CheckConstraint("reserved_seats >= 0", name="check_reserved_seats_non_negative"),
        CheckConstraint("reserved_seats <= capacity", name="check_reserved_lte_capacity"),
        CheckConstraint(
            "status IN ('scheduled', 'cancelled', 'completed')", name="check_class_status"
        ),
        CheckConstraint(
            "category IN ('group', 'personal', 'daypass')", name="check_class_category"
        ),
        CheckConstraint("equipment_type IN ('mat', 'reformer')", name="check_class_equipment"),
        Index("ix_class_instances_starts_at", "starts_at"),
        Index("ix_class_instances_status_starts_at", "status", "starts_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<ClassInstance(id={self.id}, name={self.name}, "
            f"reserved={self.reserved_seats}/{self.capacity}, status={self.status})>"
        )
