from pydantic import BaseModel


class SweepResponse(BaseModel):
    classes_closed: int
    bookings_closed: int
    waitlist_entries_removed: int
    subscriptions_expired: int
