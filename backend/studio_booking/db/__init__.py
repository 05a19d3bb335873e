from studio_booking.db.base import Base, TimestampMixin, UTCDateTime, utcnow

__all__ = ["Base", "TimestampMixin", "UTCDateTime", "utcnow"]
