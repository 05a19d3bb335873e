"""
User model. Rows are provisioned by the identity platform; this service reads them.
"""

import enum

from sqlalchemy import Column, Integer, String, Boolean, CheckConstraint

from studio_booking.db.base import Base, TimestampMixin


class UserRole(str, enum.Enum):
    CLIENT = "client"
    INSTRUCTOR = "instructor"
    STAFF = "staff"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.CLIENT.value)
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint("role IN ('client', 'instructor', 'staff')", name="check_user_role"),
    )

    @property
    def is_staff(self) -> bool:
        return self.role == UserRole.STAFF.value

    @property
    def can_manage_classes(self) -> bool:
        return self.role in (UserRole.STAFF.value, UserRole.INSTRUCTOR.value)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
