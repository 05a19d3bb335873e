from studio_booking.models.user import User, UserRole
from studio_booking.models.subscription import Subscription, SubscriptionStatus, Category, EquipmentAccess
from studio_booking.models.class_instance import ClassInstance, ClassStatus, EquipmentType
from studio_booking.models.booking import Booking, BookingStatus, SEAT_HOLDING_STATUSES
from studio_booking.models.waitlist import WaitlistEntry

__all__ = [
    "User", "UserRole",
    "Subscription", "SubscriptionStatus", "Category", "EquipmentAccess",
    "ClassInstance", "ClassStatus", "EquipmentType",
    "Booking", "BookingStatus", "SEAT_HOLDING_STATUSES",
    "WaitlistEntry",
]
