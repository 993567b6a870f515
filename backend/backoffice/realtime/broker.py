"""
In-process publish/subscribe broker for the realtime channel.

DELIVERY MODEL
==============

Publishing is fire-and-forget. `publish()` is synchronous, never blocks and
never raises: a failing relay or a full subscriber queue loses the event and
the write that produced it still succeeds. Clients recover by re-fetching
(see `backoffice.client.cache`).

  publish(topic, event, payload)
      -> relay.send(frame)            local: deliver() right away
                                       redis: PUBLISH, every worker's listener
                                              calls deliver() on receipt
      -> deliver(frame)
      -> subscription.offer(frame)    bounded queue, dropped when full

The broker is built by `create_app()` and stored on `app.state`; handlers get
it through `Depends(get_broker)`. The relay's background tasks (if any) are
started and stopped by the application lifespan.
"""

import asyncio
import uuid
from collections import defaultdict
from typing import Any, Optional

from starlette.requests import HTTPConnection

from backoffice.core.logging import get_logger
from backoffice.core.metrics import realtime_dropped, record_realtime_event
from backoffice.services.interfaces.relay import EventRelay
from backoffice.services.interfaces.local_relay import LocalRelay

logger = get_logger(__name__)

DEFAULT_QUEUE_SIZE = 100


class Subscription:
    """One connected client: the topics it listens to and its outbound queue."""

    def __init__(self, maxsize: int = DEFAULT_QUEUE_SIZE):
        self.id = uuid.uuid4().hex[:12]
        self.topics: set[str] = set()
        self.dropped = 0
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    def offer(self, frame: dict) -> bool:
        try:
            self._queue.put_nowait(frame)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            return False

    async def get(self) -> dict:
        return await self._queue.get()

    def get_nowait(self) -> Optional[dict]:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def pending(self) -> int:
        return self._queue.qsize()


class RealtimeBroker:

    def __init__(self, relay: Optional[EventRelay] = None, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.queue_size = queue_size
        self.relay = relay or LocalRelay()
        self.relay.bind(self)
        self._subscribers: dict[str, set[Subscription]] = defaultdict(set)

    # -- lifecycle ---------------------------------------------------------

    async def start(self) -> None:
        await self.relay.start()
        logger.info("realtime_broker_started", relay=self.relay.name)

    async def stop(self) -> None:
        await self.relay.stop()
        logger.info("realtime_broker_stopped")

    # -- subscriptions -----------------------------------------------------

    def subscribe(self, *topics: str) -> Subscription:
        subscription = Subscription(maxsize=self.queue_size)
        for topic in topics:
            self.join(subscription, topic)
        return subscription

    def join(self, subscription: Subscription, topic: str) -> None:
        self._subscribers[topic].add(subscription)
        subscription.topics.add(topic)

    def leave(self, subscription: Subscription, topic: str) -> None:
        members = self._subscribers.get(topic)
        if members is not None:
            members.discard(subscription)
            if not members:
                del self._subscribers[topic]
        subscription.topics.discard(topic)

    def unsubscribe(self, subscription: Subscription) -> None:
        for topic in list(subscription.topics):
            self.leave(subscription, topic)

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))

    # -- publishing --------------------------------------------------------

    def publish(self, topic: str, event: str, payload: Any) -> None:
        """Send `event` to everyone on `topic`. Best effort: errors are logged, not raised."""
        event_name = getattr(event, "value", event)
        frame = {"topic": topic, "event": event_name, "data": payload}
        try:
            self.relay.send(frame)
        except Exception as e:
            record_realtime_event(event_name, published=False)
            logger.warning("realtime_publish_failed", topic=topic, realtime_event=event_name, error=str(e))
            return
        record_realtime_event(event_name, published=True)

    def deliver(self, frame: dict) -> int:
        """Hand a frame to local subscribers of its topic. Returns how many got it."""
        delivered = 0
        for subscription in list(self._subscribers.get(frame.get("topic"), ())):
            if subscription.offer(frame):
                delivered += 1
            else:
                realtime_dropped.inc()
                logger.warning(
                    "realtime_frame_dropped",
                    subscription=subscription.id,
                    topic=frame.get("topic"),
                    realtime_event=frame.get("event"),
                )
        return delivered


def get_broker(connection: HTTPConnection) -> RealtimeBroker:
    """FastAPI dependency: the broker created by create_app()."""
    return connection.app.state.broker
