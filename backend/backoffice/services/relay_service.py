"""
Redis pub/sub relay for the realtime channel.
Implements EventRelay so every API worker delivers every frame.

Each worker runs two tasks:
  publisher: drains a bounded outbound queue into PUBLISH <prefix>:<topic>
  listener:  PSUBSCRIBE <prefix>:* and delivers received frames locally

Failure mode:
  The relay fails open towards availability, never towards blocking writes.
  If Redis is unavailable at startup, frames are delivered locally only
  (single-worker behaviour). If the outbound queue is full or PUBLISH fails,
  the frame is dropped and counted. Delivery is at-most-once either way.
"""

import asyncio
import json
from typing import Optional

from backoffice.core.config import get_settings
from backoffice.core.logging import get_logger
from backoffice.core.metrics import redis_relay_errors
from backoffice.infrastructure.redis_client import get_redis
from backoffice.services.interfaces.relay import EventRelay

logger = get_logger(__name__)
settings = get_settings()


class RedisRelay(EventRelay):
    """
    Redis-backed relay.

    Use when:
    - More than one API worker (uvicorn --workers, several pods)
    - Clients of one booking may be connected to different workers
    """

    name = "redis"

    def __init__(self, prefix: Optional[str] = None, queue_size: Optional[int] = None):
        self.prefix = prefix or settings.REALTIME_CHANNEL_PREFIX
        self.queue_size = queue_size or settings.REALTIME_QUEUE_SIZE
        self._outbound: Optional[asyncio.Queue] = None
        self._tasks: list[asyncio.Task] = []
        self._redis = None

    @property
    def connected(self) -> bool:
        return self._redis is not None

    def channel_for(self, topic: str) -> str:
        return f"{self.prefix}:{topic}"

    def send(self, frame: dict) -> None:
        if not self.connected:
            # Degraded mode: no Redis, this worker's clients still get it
            self.broker.deliver(frame)
            return
        try:
            self._outbound.put_nowait(frame)
        except asyncio.QueueFull:
            redis_relay_errors.inc()
            logger.warning("redis_relay_queue_full", topic=frame.get("topic"))

    async def start(self) -> None:
        self._redis = await get_redis()
        if not self.connected:
            logger.warning("redis_relay_degraded", message="Delivering realtime events locally only")
            return
        self._outbound = asyncio.Queue(maxsize=self.queue_size)
        self._tasks = [
            asyncio.create_task(self._publisher(), name="redis-relay-publisher"),
            asyncio.create_task(self._listener(), name="redis-relay-listener"),
        ]
        logger.info("redis_relay_started", prefix=self.prefix)

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        self._redis = None

    async def _publisher(self) -> None:
        while True:
            frame = await self._outbound.get()
            try:
                await self._redis.publish(self.channel_for(frame["topic"]), json.dumps(frame, default=str))
            except Exception as e:
                redis_relay_errors.inc()
                logger.error("redis_relay_publish_failed", topic=frame.get("topic"), error=str(e))

    async def _listener(self) -> None:
        pubsub = self._redis.pubsub()
        await pubsub.psubscribe(f"{self.prefix}:*")
        try:
            while True:
                try:
                    message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                except Exception as e:
                    redis_relay_errors.inc()
                    logger.error("redis_relay_listen_failed", error=str(e))
                    await asyncio.sleep(1.0)
                    continue
                if message is None or message.get("type") != "pmessage":
                    continue
                self.handle_message(message.get("data"))
        finally:
            await pubsub.aclose()

    def handle_message(self, data) -> None:
        """Decode one pub/sub payload and deliver it to local subscribers."""
        try:
            frame = json.loads(data)
        except (TypeError, ValueError):
            redis_relay_errors.inc()
            logger.warning("redis_relay_bad_payload")
            return
        self.broker.deliver(frame)
