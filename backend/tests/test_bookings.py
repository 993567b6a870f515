"""
Tests for booking endpoints: ownership, the edit-access guard and realtime pushes.
"""

import pytest
from httpx import AsyncClient

from conftest import ALICE, BOOKING_PAYLOAD, CAROL, drain
from backoffice.realtime.topics import GLOBAL_TOPIC, booking_topic


@pytest.mark.asyncio
async def test_create_booking(client: AsyncClient, alice_headers, broker):
    """The creator becomes the owner and can edit their own booking."""
    probe = broker.subscribe(GLOBAL_TOPIC)

    response = await client.post("/api/v1/bookings", json=BOOKING_PAYLOAD, headers=alice_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["userId"] == ALICE.id
    assert data["ownerName"] == ALICE.name
    assert data["approvedEditors"] == []
    assert data["canEdit"] is True
    assert data["status"] == "pending"
    assert data["paymentStatus"] == "pending"
    assert data["guests"] == {"adults": 2, "children": 1, "childrenAges": [7]}

    frames = drain(probe)
    assert [f["event"] for f in frames] == ["booking-created"]
    assert frames[0]["data"]["id"] == data["id"]
    assert "canEdit" not in frames[0]["data"]


@pytest.mark.asyncio
async def test_create_booking_unauthenticated(client: AsyncClient):
    response = await client.post("/api/v1/bookings", json=BOOKING_PAYLOAD)
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


@pytest.mark.asyncio
async def test_create_booking_invalid_token(client: AsyncClient):
    response = await client.post(
        "/api/v1/bookings",
        json=BOOKING_PAYLOAD,
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_booking_validation(client: AsyncClient, alice_headers):
    """Malformed email and negative totals are rejected with the error envelope."""
    payload = {**BOOKING_PAYLOAD, "customerEmail": "nope", "totalAmount": -1}
    response = await client.post("/api/v1/bookings", json=payload, headers=alice_headers)
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "Invalid request"
    assert len(body["details"]) == 2


@pytest.mark.asyncio
async def test_list_bookings_flags_can_edit_per_caller(
    client: AsyncClient, alice_headers, carol_headers, alice_booking,
):
    """Every user sees every booking; canEdit depends on who asks."""
    response = await client.get("/api/v1/bookings", headers=carol_headers)
    assert response.status_code == 200
    bookings = response.json()
    assert [b["id"] for b in bookings] == [alice_booking["id"]]
    assert bookings[0]["canEdit"] is False

    response = await client.get("/api/v1/bookings", headers=alice_headers)
    assert response.json()[0]["canEdit"] is True


@pytest.mark.asyncio
async def test_list_bookings_filters(client: AsyncClient, alice_headers, alice_booking):
    flight = {**BOOKING_PAYLOAD, "type": "flight", "flightNumber": "TP123", "status": "confirmed"}
    created = await client.post("/api/v1/bookings", json=flight, headers=alice_headers)
    assert created.status_code == 201

    response = await client.get("/api/v1/bookings", params={"type": "flight"}, headers=alice_headers)
    assert [b["id"] for b in response.json()] == [created.json()["id"]]

    response = await client.get("/api/v1/bookings", params={"status": "pending"}, headers=alice_headers)
    assert [b["id"] for b in response.json()] == [alice_booking["id"]]


@pytest.mark.asyncio
async def test_get_booking(client: AsyncClient, carol_headers, alice_booking):
    response = await client.get(f"/api/v1/bookings/{alice_booking['id']}", headers=carol_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["customerName"] == "John Traveller"
    assert data["canEdit"] is False


@pytest.mark.asyncio
async def test_get_booking_not_found(client: AsyncClient, alice_headers):
    response = await client.get("/api/v1/bookings/does-not-exist", headers=alice_headers)
    assert response.status_code == 404
    assert response.json() == {"error": "Booking not found"}


@pytest.mark.asyncio
async def test_owner_updates_booking(client: AsyncClient, alice_headers, alice_booking, broker):
    """An update is applied and pushed to the global and booking topics."""
    booking_id = alice_booking["id"]
    global_probe = broker.subscribe(GLOBAL_TOPIC)
    booking_probe = broker.subscribe(booking_topic(booking_id))

    response = await client.put(
        f"/api/v1/bookings/{booking_id}",
        json={"status": "confirmed", "amountPaid": 200},
        headers=alice_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "confirmed"
    assert data["amountPaid"] == 200
    assert data["totalAmount"] == 500

    for probe in (global_probe, booking_probe):
        frames = drain(probe)
        assert [f["event"] for f in frames] == ["booking-updated"]
        assert frames[0]["data"]["status"] == "confirmed"


@pytest.mark.asyncio
async def test_non_editor_update_needs_approval(
    client: AsyncClient, alice_headers, carol_headers, alice_booking, broker,
):
    """A stranger's update is refused with needsApproval and changes nothing."""
    booking_id = alice_booking["id"]
    probe = broker.subscribe(GLOBAL_TOPIC)

    response = await client.put(
        f"/api/v1/bookings/{booking_id}",
        json={"totalAmount": 1},
        headers=carol_headers,
    )
    assert response.status_code == 403
    body = response.json()
    assert body["needsApproval"] is True
    assert "error" in body
    assert drain(probe) == []

    current = await client.get(f"/api/v1/bookings/{booking_id}", headers=alice_headers)
    assert current.json()["totalAmount"] == 500


@pytest.mark.asyncio
async def test_update_cannot_clear_required_field(client: AsyncClient, alice_headers, alice_booking):
    response = await client.put(
        f"/api/v1/bookings/{alice_booking['id']}",
        json={"customerName": None},
        headers=alice_headers,
    )
    assert response.status_code == 400
    assert "customer_name" in response.json()["error"]


@pytest.mark.asyncio
async def test_update_missing_booking(client: AsyncClient, alice_headers):
    response = await client.put(
        "/api/v1/bookings/does-not-exist",
        json={"notes": "x"},
        headers=alice_headers,
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_requires_owner(client: AsyncClient, carol_headers, alice_booking):
    response = await client.delete(f"/api/v1/bookings/{alice_booking['id']}", headers=carol_headers)
    assert response.status_code == 403
    assert response.json() == {"error": "Only the booking owner can delete this booking"}


@pytest.mark.asyncio
async def test_owner_deletes_booking(client: AsyncClient, alice_headers, alice_booking, broker):
    booking_id = alice_booking["id"]
    probe = broker.subscribe(GLOBAL_TOPIC)

    response = await client.delete(f"/api/v1/bookings/{booking_id}", headers=alice_headers)
    assert response.status_code == 200
    assert response.json()["bookingId"] == booking_id

    frames = drain(probe)
    assert frames == [{"topic": GLOBAL_TOPIC, "event": "booking-deleted", "data": {"id": booking_id}}]

    response = await client.get(f"/api/v1/bookings/{booking_id}", headers=alice_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_activity_trail(client: AsyncClient, alice_headers, carol_headers, alice_booking):
    """Create and update are recorded newest first, readable by anyone, even after delete."""
    booking_id = alice_booking["id"]
    await client.put(f"/api/v1/bookings/{booking_id}", json={"notes": "VIP"}, headers=alice_headers)
    await client.delete(f"/api/v1/bookings/{booking_id}", headers=alice_headers)

    response = await client.get(f"/api/v1/bookings/{booking_id}/activities", headers=carol_headers)
    assert response.status_code == 200
    activities = response.json()
    assert [a["action"] for a in activities] == ["delete", "update", "create"]
    assert activities[0]["details"] == {"kind": "delete", "customerName": "John Traveller"}
    assert activities[1]["details"]["changes"] == {"notes": "VIP"}
    assert activities[2]["details"]["fields"]["customerEmail"] == "john@example.com"
    assert all(a["userId"] == ALICE.id for a in activities)
    assert CAROL.id not in {a["userId"] for a in activities}
