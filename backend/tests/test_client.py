"""
Tests for the Python client: HTTP wrapper, local cache reconciliation and feed frames.
"""

import json

import httpx
import pytest
from httpx import AsyncClient, ASGITransport

from conftest import ALICE, BOOKING_PAYLOAD, CAROL
from backoffice.client import ApiError, BackofficeClient, LocalCache, RealtimeFeed, can_edit_document
from backoffice.client import feed as feed_module
from backoffice.core.security import create_access_token


class StubClient:
    """Stands in for BackofficeClient where only refresh() is exercised."""

    def __init__(self, bookings=None, notifications=None, failure=None):
        self.bookings = bookings or []
        self.notifications = notifications or []
        self.failure = failure
        self.calls = 0

    def add_mutation_listener(self, listener):
        pass

    async def list_bookings(self):
        self.calls += 1
        if self.failure:
            raise self.failure
        return self.bookings

    async def list_notifications(self):
        return self.notifications


def _booking_doc(booking_id="b1", owner=ALICE.id, editors=()):
    return {"id": booking_id, "userId": owner, "approvedEditors": list(editors), "totalAmount": 500}


def _client_for(app, user) -> BackofficeClient:
    token = create_access_token(user.id, user.name)
    return BackofficeClient("http://test", token, transport=ASGITransport(app=app))


def test_can_edit_document():
    assert can_edit_document(_booking_doc(), ALICE.id)
    assert can_edit_document(_booking_doc(editors=[CAROL.id]), CAROL.id)
    assert not can_edit_document(_booking_doc(), CAROL.id)


def test_apply_booking_events_recomputes_can_edit():
    cache = LocalCache(StubClient(), CAROL.id)
    seen = []
    cache.on_change(seen.append)

    cache.apply({"event": "booking-created", "data": _booking_doc()})
    assert cache.bookings["b1"]["canEdit"] is False

    cache.apply({"event": "booking-updated", "data": _booking_doc(editors=[CAROL.id])})
    assert cache.can_edit("b1")

    cache.apply({"event": "booking-deleted", "data": {"id": "b1"}})
    assert cache.bookings == {}
    assert not cache.can_edit("b1")
    assert seen == ["booking-created", "booking-updated", "booking-deleted"]


def test_apply_notification_dedupes():
    cache = LocalCache(StubClient(), ALICE.id)
    notification = {"id": "n1", "isRead": False}

    cache.apply({"event": "new-notification", "data": notification})
    cache.apply({"event": "new-notification", "data": dict(notification)})

    assert len(cache.notifications) == 1
    assert cache.unread_count == 1

    cache.mark_read_locally(["n1"])
    assert cache.unread_count == 0


def test_grant_marks_bookings_stale():
    cache = LocalCache(StubClient(), CAROL.id)
    cache._stale = False

    cache.apply({
        "event": "edit-permission-granted",
        "data": {"bookingId": "b1", "notification": {"id": "n2", "isRead": False}},
    })

    assert cache.stale
    assert cache.notifications[0]["id"] == "n2"


def test_unknown_event_is_ignored():
    cache = LocalCache(StubClient(), CAROL.id)
    seen = []
    cache.on_change(seen.append)

    cache.apply({"event": "pong"})

    assert seen == []


@pytest.mark.asyncio
async def test_refresh_if_stale():
    stub = StubClient(bookings=[_booking_doc()], notifications=[{"id": "n1", "isRead": False}])
    cache = LocalCache(stub, ALICE.id)

    assert await cache.refresh_if_stale() is True
    assert await cache.refresh_if_stale() is False
    assert stub.calls == 1
    assert list(cache.bookings) == ["b1"]
    assert cache.unread_count == 1


@pytest.mark.asyncio
async def test_feed_applies_frames_and_refetches_after_grant():
    stub = StubClient(bookings=[_booking_doc(editors=[CAROL.id])])
    cache = LocalCache(stub, CAROL.id)
    cache._stale = False
    feed = RealtimeFeed("ws://test/api/v1/ws", "token", cache)

    frame = {"event": "edit-permission-granted", "data": {"bookingId": "b1", "notification": {"id": "n1"}}}
    assert await feed.handle_raw(json.dumps(frame)) == frame

    assert stub.calls == 1
    assert cache.can_edit("b1")
    assert await feed.handle_raw("not json") is None


@pytest.mark.asyncio
async def test_client_round_trip_against_app(app, client: AsyncClient, alice_booking):
    """The client surfaces needsApproval and the cache follows the grant."""
    async with _client_for(app, CAROL) as carol, _client_for(app, ALICE) as alice:
        with pytest.raises(ApiError) as exc_info:
            await carol.update_booking(alice_booking["id"], {"notes": "hi"})
        assert exc_info.value.status_code == 403
        assert exc_info.value.needs_approval

        edit_request = await carol.request_edit(alice_booking["id"], reason="typo")
        resolved = await alice.resolve_edit_request(edit_request["id"], "approved")
        assert resolved["status"] == "approved"

        cache = LocalCache(carol, CAROL.id)
        await cache.refresh()
        assert cache.can_edit(alice_booking["id"])
        assert [n["type"] for n in cache.notifications] == ["edit_approved"]

        updated = await carol.update_booking(alice_booking["id"], {"notes": "hi"})
        assert updated["notes"] == "hi"

        await carol.mark_all_read()
        assert (await carol.list_notifications())[0]["isRead"] is True


@pytest.mark.asyncio
async def test_client_create_and_delete(app, client: AsyncClient):
    async with _client_for(app, ALICE) as alice:
        created = await alice.create_booking(BOOKING_PAYLOAD)
        assert (await alice.get_booking(created["id"]))["canEdit"] is True

        await alice.delete_booking(created["id"])
        with pytest.raises(ApiError) as exc_info:
            await alice.get_booking(created["id"])
        assert exc_info.value.status_code == 404
        assert not exc_info.value.needs_approval


class FakeSocket:
    def __init__(self, frames=()):
        self.frames = list(frames)
        self.sent = []
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def __aiter__(self):
        return self._frames()

    async def _frames(self):
        for frame in self.frames:
            yield json.dumps(frame)

    async def send(self, message):
        self.sent.append(json.loads(message))

    async def close(self):
        self.closed = True


GRANT_FRAME = {"event": "edit-permission-granted", "data": {"bookingId": "b1", "notification": {"id": "n1"}}}


@pytest.mark.asyncio
@pytest.mark.parametrize("failure", [ApiError(500, {"error": "Internal server error"}), httpx.ConnectError("down")])
async def test_failed_refetch_keeps_cache_stale(failure):
    stub = StubClient(bookings=[_booking_doc(editors=[CAROL.id])], failure=failure)
    cache = LocalCache(stub, CAROL.id)
    cache._stale = False
    feed = RealtimeFeed("ws://test/api/v1/ws", "token", cache)

    assert await feed.handle_raw(json.dumps(GRANT_FRAME)) == GRANT_FRAME
    assert cache.stale

    stub.failure = None
    await feed.handle_raw(json.dumps({"event": "pong"}))
    assert not cache.stale
    assert cache.can_edit("b1")


@pytest.mark.asyncio
async def test_feed_survives_refetch_errors_and_reconnects(monkeypatch):
    """A server error while re-fetching does not end the feed; it reconnects."""
    stub = StubClient(failure=ApiError(500, {"error": "Internal server error"}))
    cache = LocalCache(stub, CAROL.id)
    feed = RealtimeFeed("ws://test/api/v1/ws", "token", cache, reconnect_delay=0)
    feed.watched.add("b1")
    sockets = []

    def fake_connect(url):
        if sockets:
            feed._stopping = True
            raise OSError("connection refused")
        sockets.append(FakeSocket([GRANT_FRAME]))
        return sockets[0]

    monkeypatch.setattr(feed_module.websockets, "connect", fake_connect)

    await feed.run()

    assert len(sockets) == 1
    assert sockets[0].sent == [{"action": "join-booking", "bookingId": "b1"}]
    assert cache.stale
    assert cache.notifications[0]["id"] == "n1"


@pytest.mark.asyncio
async def test_stop_closes_socket():
    feed = RealtimeFeed("ws://test/api/v1/ws", "token", LocalCache(StubClient(), CAROL.id))
    socket = FakeSocket()
    feed._ws = socket

    await feed.stop()

    assert socket.closed


@pytest.mark.asyncio
async def test_mutations_through_client_mark_cache_stale(app, client: AsyncClient, alice_booking):
    async with _client_for(app, ALICE) as alice:
        cache = LocalCache(alice, ALICE.id)
        await cache.refresh()
        assert not cache.stale
        seen = []
        cache.on_change(seen.append)

        await alice.update_booking(alice_booking["id"], {"notes": "late check-in"})
        assert cache.stale
        assert seen == ["bookings-changed"]

        await cache.refresh_if_stale()
        assert cache.bookings[alice_booking["id"]]["notes"] == "late check-in"

        await alice.mark_all_read()
        assert not cache.stale
