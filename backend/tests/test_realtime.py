"""
Tests for the realtime channel: broker fan-out, relays and the websocket endpoint.
"""

import asyncio
import json
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from conftest import CAROL, drain
from backoffice.core.security import create_access_token
from backoffice.api.routes.realtime import WS_CLOSE_INTERNAL_ERROR, realtime_socket
from backoffice.realtime.broker import RealtimeBroker
from backoffice.realtime.topics import GLOBAL_TOPIC, RealtimeEvent, booking_topic, user_topic
from backoffice.services.interfaces.local_relay import LocalRelay
from backoffice.services.interfaces.relay import EventRelay
from backoffice.services.relay_service import RedisRelay
from backoffice.services.strategy_factory import get_relay_strategy


class FailingRelay(EventRelay):
    name = "failing"

    def send(self, frame: dict) -> None:
        raise ConnectionError("relay down")


# Broker

def test_publish_reaches_only_topic_subscribers():
    broker = RealtimeBroker()
    carol = broker.subscribe(user_topic(CAROL.id))
    dashboard = broker.subscribe(GLOBAL_TOPIC)

    broker.publish(user_topic(CAROL.id), RealtimeEvent.NEW_NOTIFICATION, {"id": "n1"})

    assert drain(carol) == [{"topic": "user:user_carol", "event": "new-notification", "data": {"id": "n1"}}]
    assert drain(dashboard) == []


def test_join_and_leave_booking_topic():
    broker = RealtimeBroker()
    subscription = broker.subscribe(GLOBAL_TOPIC)
    topic = booking_topic("b1")

    broker.join(subscription, topic)
    assert broker.subscriber_count(topic) == 1
    broker.publish(topic, RealtimeEvent.BOOKING_UPDATED, {"id": "b1"})
    assert len(drain(subscription)) == 1

    broker.leave(subscription, topic)
    assert broker.subscriber_count(topic) == 0
    broker.publish(topic, RealtimeEvent.BOOKING_UPDATED, {"id": "b1"})
    assert drain(subscription) == []


def test_unsubscribe_removes_all_topics():
    broker = RealtimeBroker()
    subscription = broker.subscribe(GLOBAL_TOPIC, user_topic(CAROL.id))

    broker.unsubscribe(subscription)

    assert subscription.topics == set()
    assert broker.subscriber_count(GLOBAL_TOPIC) == 0
    assert broker.subscriber_count(user_topic(CAROL.id)) == 0


def test_full_queue_drops_frames():
    """A slow client loses frames instead of blocking the publisher."""
    broker = RealtimeBroker(queue_size=2)
    slow = broker.subscribe(GLOBAL_TOPIC)
    fast = broker.subscribe(GLOBAL_TOPIC)

    for i in range(3):
        broker.publish(GLOBAL_TOPIC, RealtimeEvent.BOOKING_CREATED, {"id": f"b{i}"})
        drain(fast)

    assert slow.pending() == 2
    assert slow.dropped == 1
    assert fast.dropped == 0
    assert [f["data"]["id"] for f in drain(slow)] == ["b0", "b1"]


def test_publish_never_raises():
    broker = RealtimeBroker(relay=FailingRelay())
    subscription = broker.subscribe(GLOBAL_TOPIC)

    broker.publish(GLOBAL_TOPIC, RealtimeEvent.BOOKING_DELETED, {"id": "b1"})

    assert drain(subscription) == []


def test_deliver_counts_recipients():
    broker = RealtimeBroker()
    broker.subscribe(GLOBAL_TOPIC)
    broker.subscribe(GLOBAL_TOPIC)

    assert broker.deliver({"topic": GLOBAL_TOPIC, "event": "booking-created", "data": {}}) == 2
    assert broker.deliver({"topic": "nobody", "event": "booking-created", "data": {}}) == 0


# Relays

def test_default_relay_is_local():
    assert isinstance(get_relay_strategy(), LocalRelay)


def test_redis_relay_delivers_locally_when_not_connected():
    relay = RedisRelay(prefix="test:realtime", queue_size=5)
    broker = RealtimeBroker(relay=relay)
    subscription = broker.subscribe(GLOBAL_TOPIC)

    broker.publish(GLOBAL_TOPIC, RealtimeEvent.BOOKING_CREATED, {"id": "b1"})

    assert relay.connected is False
    assert [f["data"] for f in drain(subscription)] == [{"id": "b1"}]


@pytest.mark.asyncio
async def test_redis_relay_start_degrades_without_redis():
    relay = RedisRelay(prefix="test:realtime")
    RealtimeBroker(relay=relay)

    await relay.start()

    assert relay.connected is False
    assert relay._tasks == []
    await relay.stop()


def test_redis_relay_handles_incoming_payloads():
    relay = RedisRelay(prefix="test:realtime")
    broker = RealtimeBroker(relay=relay)
    subscription = broker.subscribe(booking_topic("b1"))
    frame = {"topic": booking_topic("b1"), "event": "booking-updated", "data": {"id": "b1"}}

    relay.handle_message(json.dumps(frame).encode())
    relay.handle_message(b"not json")
    relay.handle_message(None)

    assert drain(subscription) == [frame]
    assert relay.channel_for("bookings") == "test:realtime:bookings"


# Websocket

def _ws_url(token: str) -> str:
    return f"/api/v1/ws?token={token}"


def test_websocket_rejects_bad_token(app):
    client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect(_ws_url("garbage")):
            pass
    assert exc_info.value.code == 4401


def test_websocket_rejects_missing_token(app):
    client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/api/v1/ws"):
            pass
    assert exc_info.value.code == 4401


def test_websocket_ping_and_join(app):
    client = TestClient(app)
    token = create_access_token(CAROL.id, CAROL.name)

    with client.websocket_connect(_ws_url(token)) as ws:
        ws.send_text(json.dumps({"action": "ping"}))
        assert ws.receive_json() == {"event": "pong"}

        ws.send_text(json.dumps({"action": "join-booking", "bookingId": "b1"}))
        assert ws.receive_json() == {"event": "joined", "topic": "booking:b1"}

        ws.send_text(json.dumps({"action": "leave-booking", "bookingId": "b1"}))
        assert ws.receive_json() == {"event": "left", "topic": "booking:b1"}


def test_websocket_reports_bad_messages(app):
    client = TestClient(app)
    token = create_access_token(CAROL.id, CAROL.name)

    with client.websocket_connect(_ws_url(token)) as ws:
        ws.send_text("{not json")
        assert ws.receive_json()["event"] == "error"

        ws.send_text(json.dumps({"action": "join-booking"}))
        reply = ws.receive_json()
        assert reply["event"] == "error"
        assert "join-booking" in reply["data"]["message"]


def test_websocket_answers_binary_frames_with_error(app):
    client = TestClient(app)
    token = create_access_token(CAROL.id, CAROL.name)

    with client.websocket_connect(_ws_url(token)) as ws:
        ws.send_bytes(b"\x00\x01")
        assert ws.receive_json() == {"event": "error", "data": {"message": "Invalid message"}}

        ws.send_text(json.dumps({"action": "ping"}))
        assert ws.receive_json() == {"event": "pong"}


class BrokenSocket:
    """Accepts one ping, then fails on every send and never disconnects by itself."""

    def __init__(self, broker: RealtimeBroker):
        self.app = SimpleNamespace(state=SimpleNamespace(broker=broker))
        self.close_code = None
        self._messages = [{"type": "websocket.receive", "text": json.dumps({"action": "ping"})}]

    async def accept(self):
        pass

    async def receive(self):
        if self._messages:
            return self._messages.pop(0)
        await asyncio.Event().wait()

    async def send_json(self, data):
        raise RuntimeError("transport broken")

    async def close(self, code=1000):
        self.close_code = code


@pytest.mark.asyncio
async def test_websocket_closes_when_sending_fails():
    """A dead sender closes the socket and releases the subscription."""
    broker = RealtimeBroker()
    socket = BrokenSocket(broker)

    await asyncio.wait_for(
        realtime_socket(socket, token=create_access_token(CAROL.id, CAROL.name)),
        timeout=5,
    )

    assert socket.close_code == WS_CLOSE_INTERNAL_ERROR
    assert broker.subscriber_count(user_topic(CAROL.id)) == 0
    assert broker.subscriber_count(GLOBAL_TOPIC) == 0
