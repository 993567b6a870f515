"""
Async HTTP client for the back-office API (httpx).
"""

from typing import Any, Callable, Optional

import httpx

API_PREFIX = "/api/v1"


class ApiError(Exception):
    """A non-2xx response. `needs_approval` is set when edit access must be requested."""

    def __init__(self, status_code: int, body: Any):
        self.status_code = status_code
        self.body = body if isinstance(body, dict) else {"error": str(body)}
        super().__init__(f"{status_code}: {self.body.get('error')}")

    @property
    def needs_approval(self) -> bool:
        return bool(self.body.get("needsApproval"))


class BackofficeClient:

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            transport=transport,
            timeout=timeout,
        )
        self._mutation_listeners: list[Callable[[], None]] = []

    async def __aenter__(self) -> "BackofficeClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def add_mutation_listener(self, listener: Callable[[], None]) -> None:
        """Called after every successful booking or edit-request mutation made through this client."""
        self._mutation_listeners.append(listener)

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        response = await self._http.request(method, f"{API_PREFIX}{path}", **kwargs)
        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            raise ApiError(response.status_code, body)
        return response.json()

    async def _mutate(self, method: str, path: str, **kwargs) -> Any:
        result = await self._request(method, path, **kwargs)
        for listener in self._mutation_listeners:
            listener()
        return result

    # Bookings

    async def list_bookings(self, type: Optional[str] = None, status: Optional[str] = None) -> list[dict]:
        params = {k: v for k, v in {"type": type, "status": status}.items() if v}
        return await self._request("GET", "/bookings", params=params)

    async def get_booking(self, booking_id: str) -> dict:
        return await self._request("GET", f"/bookings/{booking_id}")

    async def create_booking(self, data: dict) -> dict:
        return await self._mutate("POST", "/bookings", json=data)

    async def update_booking(self, booking_id: str, changes: dict) -> dict:
        return await self._mutate("PUT", f"/bookings/{booking_id}", json=changes)

    async def delete_booking(self, booking_id: str) -> dict:
        return await self._mutate("DELETE", f"/bookings/{booking_id}")

    # Edit requests

    async def request_edit(self, booking_id: str, reason: Optional[str] = None) -> dict:
        body = {"reason": reason} if reason else {}
        return await self._mutate("POST", f"/bookings/{booking_id}/edit-requests", json=body)

    async def resolve_edit_request(self, request_id: str, action: str) -> dict:
        return await self._mutate("PUT", f"/bookings/edit-requests/{request_id}", json={"action": action})

    # Notifications

    async def list_notifications(self) -> list[dict]:
        return await self._request("GET", "/notifications")

    async def mark_read(self, notification_ids: list[str]) -> dict:
        return await self._request("PUT", "/notifications", json={"notificationIds": notification_ids})

    async def mark_all_read(self) -> dict:
        return await self._request("PUT", "/notifications", json={"markAll": True})
