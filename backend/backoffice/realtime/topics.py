"""
Topic names and event names shared by publishers and the websocket endpoint.
"""

import enum

# Every booking mutation goes here (dashboards listen to it)
GLOBAL_TOPIC = "bookings"


def booking_topic(booking_id: str) -> str:
    return f"booking:{booking_id}"


def user_topic(user_id: str) -> str:
    return f"user:{user_id}"


class RealtimeEvent(str, enum.Enum):
    BOOKING_CREATED = "booking-created"
    BOOKING_UPDATED = "booking-updated"
    BOOKING_DELETED = "booking-deleted"
    NEW_NOTIFICATION = "new-notification"
    EDIT_PERMISSION_GRANTED = "edit-permission-granted"
