"""
Websocket consumer that keeps a LocalCache current.
"""

import asyncio
import json
from typing import Optional

import httpx
import websockets
from websockets.exceptions import ConnectionClosed

from backoffice.client.api import ApiError
from backoffice.client.cache import LocalCache
from backoffice.core.logging import get_logger

logger = get_logger(__name__)


class RealtimeFeed:
    """
    Connects to `/api/v1/ws`, re-joins watched bookings on every connect and
    forwards frames to the cache. Reconnects with exponential backoff; after
    a reconnect the cache is marked stale because frames were missed.
    """

    def __init__(
        self,
        ws_url: str,
        token: str,
        cache: LocalCache,
        *,
        reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 30.0,
    ):
        self.url = f"{ws_url}?token={token}"
        self.cache = cache
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay
        self.watched: set[str] = set()
        self._ws = None
        self._stopping = False

    async def run(self) -> None:
        delay = self.reconnect_delay
        connected_before = False
        while not self._stopping:
            try:
                async with websockets.connect(self.url) as ws:
                    self._ws = ws
                    delay = self.reconnect_delay
                    if connected_before:
                        self.cache.signal_bookings_changed()
                    connected_before = True
                    for booking_id in self.watched:
                        await self._send({"action": "join-booking", "bookingId": booking_id})
                    await self._refresh()
                    async for raw in ws:
                        await self.handle_raw(raw)
            except (OSError, ConnectionClosed) as e:
                logger.warning("realtime_feed_disconnected", error=str(e), retry_in=delay)
            finally:
                self._ws = None
            if self._stopping:
                break
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.max_reconnect_delay)

    async def stop(self) -> None:
        self._stopping = True
        if self._ws is not None:
            await self._ws.close()

    async def watch_booking(self, booking_id: str) -> None:
        self.watched.add(booking_id)
        await self._send({"action": "join-booking", "bookingId": booking_id})

    async def unwatch_booking(self, booking_id: str) -> None:
        self.watched.discard(booking_id)
        await self._send({"action": "leave-booking", "bookingId": booking_id})

    async def handle_raw(self, raw) -> Optional[dict]:
        """Apply one frame; re-fetch if it (or anything before it) made the cache stale."""
        try:
            frame = json.loads(raw)
        except ValueError:
            logger.warning("realtime_feed_bad_frame")
            return None
        if not isinstance(frame, dict):
            return None
        self.cache.apply(frame)
        await self._refresh()
        return frame

    async def _refresh(self) -> None:
        """Re-fetch if stale. A failed fetch leaves the cache stale for the next frame or reconnect."""
        try:
            await self.cache.refresh_if_stale()
        except (ApiError, httpx.HTTPError) as e:
            logger.warning("realtime_feed_refresh_failed", error=str(e))

    async def _send(self, message: dict) -> None:
        if self._ws is not None:
            await self._ws.send(json.dumps(message))
