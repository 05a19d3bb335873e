"""
Waitlist entry: a user queued for a seat in a full class.

Position is the single source of ordering truth: 1-based, dense and unique per
class. Entries are deleted (not flagged) once promoted, withdrawn or swept.
Position uniqueness is maintained under the per-class row lock rather than a
unique index, because compaction shifts many positions in one statement.
"""

from sqlalchemy import Column, Integer, ForeignKey, Index, UniqueConstraint, CheckConstraint

from studio_booking.db.base import Base, UTCDateTime, utcnow


class WaitlistEntry(Base):
    __tablename__ = "waitlist_entries"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    class_id = Column(Integer, ForeignKey("class_instances.id"), nullable=False)
    position = Column(Integer, nullable=False)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("class_id", "user_id", name="uq_waitlist_class_user"),
        CheckConstraint("position > 0", name="check_waitlist_position_positive"),
        Index("ix_waitlist_class_position", "class_id", "position"),
    )

    def __repr__(self) -> str:
        return f"<WaitlistEntry(class={self.class_id}, user={self.user_id}, position={self.position})>"
