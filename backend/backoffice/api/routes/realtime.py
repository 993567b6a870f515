"""
Realtime websocket endpoint.

Connect with `/api/v1/ws?token=<jwt>`. After the token is verified the socket
listens to its user topic and the global bookings topic. Client messages:

  {"action": "join-booking",  "bookingId": "..."}   -> {"event": "joined", "topic": ...}
  {"action": "leave-booking", "bookingId": "..."}   -> {"event": "left", "topic": ...}
  {"action": "ping"}                                -> {"event": "pong"}

Server pushes are `{"event", "topic", "data"}` frames. Replies and pushes go
through the same bounded queue, so a single task writes to the socket.
"""

import asyncio
import json
from typing import Optional

import structlog
from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect

from backoffice.core.logging import get_logger
from backoffice.core.metrics import realtime_connections
from backoffice.core.security import decode_access_token
from backoffice.realtime.broker import RealtimeBroker, Subscription, get_broker
from backoffice.realtime.topics import GLOBAL_TOPIC, booking_topic, user_topic

logger = get_logger(__name__)
router = APIRouter(tags=["Realtime"])

# 4401 sits in the range reserved for applications (4000-4999)
WS_CLOSE_UNAUTHORIZED = 4401
WS_CLOSE_INTERNAL_ERROR = 1011


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, token: Optional[str] = Query(None)):
    broker = get_broker(websocket)

    try:
        user = decode_access_token(token or "")
    except HTTPException:
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED)
        return

    await websocket.accept()
    subscription = broker.subscribe(user_topic(user.id), GLOBAL_TOPIC)
    realtime_connections.inc()
    structlog.contextvars.bind_contextvars(connection_id=subscription.id, user_id=user.id)
    logger.info("realtime_connected")

    receiver = asyncio.create_task(_receive(websocket, broker, subscription))
    sender = asyncio.create_task(_pump(websocket, subscription))
    try:
        await asyncio.wait({receiver, sender}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        broker.unsubscribe(subscription)
        realtime_connections.dec()
        for task in (receiver, sender):
            task.cancel()
        await asyncio.gather(receiver, sender, return_exceptions=True)

    failure = None if sender.cancelled() else sender.exception()
    if failure is not None and not isinstance(failure, WebSocketDisconnect):
        # The socket can no longer be written to; make the client reconnect
        logger.warning("realtime_send_failed", error=str(failure))
        try:
            await websocket.close(code=WS_CLOSE_INTERNAL_ERROR)
        except RuntimeError as e:
            logger.debug("realtime_close_failed", error=str(e))
    logger.info("realtime_disconnected", dropped=subscription.dropped)
    structlog.contextvars.unbind_contextvars("connection_id", "user_id")


async def _receive(websocket: WebSocket, broker: RealtimeBroker, subscription: Subscription) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return
        handle_client_message(broker, subscription, message.get("text"))


async def _pump(websocket: WebSocket, subscription: Subscription) -> None:
    while True:
        frame = await subscription.get()
        await websocket.send_json(frame)


def handle_client_message(broker: RealtimeBroker, subscription: Subscription, raw: Optional[str]) -> None:
    """Act on one client message. `raw` is None for binary frames, which are not understood."""
    try:
        message = json.loads(raw) if raw is not None else None
    except ValueError:
        message = None
    if not isinstance(message, dict):
        subscription.offer({"event": "error", "data": {"message": "Invalid message"}})
        return

    action = message.get("action")
    booking_id = message.get("bookingId")

    if action == "ping":
        subscription.offer({"event": "pong"})
    elif action in ("join-booking", "leave-booking") and booking_id:
        topic = booking_topic(str(booking_id))
        if action == "join-booking":
            broker.join(subscription, topic)
            subscription.offer({"event": "joined", "topic": topic})
        else:
            broker.leave(subscription, topic)
            subscription.offer({"event": "left", "topic": topic})
    else:
        subscription.offer({"event": "error", "data": {"message": f"Unsupported action: {action}"}})
