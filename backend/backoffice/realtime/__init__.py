"""
Realtime channel: topic-scoped push of booking and notification events to
connected websocket clients.
"""

from backoffice.realtime.broker import RealtimeBroker, Subscription, get_broker
from backoffice.realtime.topics import GLOBAL_TOPIC, RealtimeEvent, booking_topic, user_topic

__all__ = [
    "RealtimeBroker", "Subscription", "get_broker",
    "GLOBAL_TOPIC", "RealtimeEvent", "booking_topic", "user_topic",
]
