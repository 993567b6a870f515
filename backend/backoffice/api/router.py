"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from backoffice.api.routes import edit_requests, bookings, notifications, realtime

api_router = APIRouter(prefix="/api/v1")
# edit_requests first: /bookings/edit-requests must not match /bookings/{booking_id}
api_router.include_router(edit_requests.router)
api_router.include_router(bookings.router)
api_router.include_router(notifications.router)
api_router.include_router(realtime.router)
