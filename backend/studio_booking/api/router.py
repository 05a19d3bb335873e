"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from studio_booking.api.routes import bookings, classes, maintenance, subscriptions, waitlist

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(classes.router)
api_router.include_router(bookings.router)
api_router.include_router(waitlist.router)
api_router.include_router(subscriptions.router)
api_router.include_router(maintenance.router)
