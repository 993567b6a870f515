"""
Client-side cache of bookings and notifications.

Two update paths keep it close to the server:

  apply(frame)               event payloads, applied as they arrive
  signal_bookings_changed()  marks the cache stale; refresh() re-fetches
                             everything. Raised after every mutation made
                             through the client, by edit-permission-granted
                             and by the feed after a reconnect (frames sent
                             while offline are lost).
"""

from typing import Callable, Optional

from backoffice.client.api import BackofficeClient
from backoffice.core.logging import get_logger

logger = get_logger(__name__)


def can_edit_document(booking: dict, user_id: str) -> bool:
    """Same rule as the server: owner or approved editor. Advisory only."""
    return user_id == booking.get("userId") or user_id in booking.get("approvedEditors", [])


class LocalCache:

    def __init__(self, client: BackofficeClient, user_id: str):
        self.client = client
        self.user_id = user_id
        self.bookings: dict[str, dict] = {}
        self.notifications: list[dict] = []
        self._stale = True
        self._listeners: list[Callable[[str], None]] = []
        client.add_mutation_listener(self.signal_bookings_changed)

    @property
    def stale(self) -> bool:
        return self._stale

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.notifications if not n.get("isRead"))

    def on_change(self, listener: Callable[[str], None]) -> None:
        """Register a callback invoked with the event name after every change."""
        self._listeners.append(listener)

    def signal_bookings_changed(self) -> None:
        self._stale = True
        self._emit("bookings-changed")

    def can_edit(self, booking_id: str) -> bool:
        booking = self.bookings.get(booking_id)
        return booking is not None and can_edit_document(booking, self.user_id)

    async def refresh(self) -> None:
        bookings = await self.client.list_bookings()
        notifications = await self.client.list_notifications()
        self.bookings = {b["id"]: b for b in bookings}
        self.notifications = notifications
        self._stale = False
        logger.debug("cache_refreshed", bookings=len(self.bookings), notifications=len(self.notifications))
        self._emit("refreshed")

    async def refresh_if_stale(self) -> bool:
        if not self._stale:
            return False
        await self.refresh()
        return True

    def apply(self, frame: dict) -> None:
        event = frame.get("event")
        data = frame.get("data") or {}

        if event in ("booking-created", "booking-updated"):
            booking = dict(data)
            booking["canEdit"] = can_edit_document(booking, self.user_id)
            self.bookings[booking["id"]] = booking
        elif event == "booking-deleted":
            self.bookings.pop(data.get("id"), None)
        elif event == "new-notification":
            self._add_notification(data)
        elif event == "edit-permission-granted":
            self._add_notification(data.get("notification") or {})
            # The grant changes approvedEditors, which this frame does not carry
            self.signal_bookings_changed()
        else:
            return
        self._emit(event)

    def mark_read_locally(self, notification_ids: Optional[list[str]] = None) -> None:
        for notification in self.notifications:
            if notification_ids is None or notification.get("id") in notification_ids:
                notification["isRead"] = True

    def _add_notification(self, notification: dict) -> None:
        if not notification.get("id"):
            return
        if any(n.get("id") == notification["id"] for n in self.notifications):
            return
        self.notifications.insert(0, notification)

    def _emit(self, event: str) -> None:
        for listener in self._listeners:
            listener(event)
