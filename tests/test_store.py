"""
NotificationStore: persistence requests against a mocked backend.
"""

import httpx
import pytest

from bizpulse.auth import MemoryTokenStore
from bizpulse.notifications import STORE_ENDPOINT, NotificationStore, StoreFault

from conftest import BACKEND_URL, RecordingBackend


def _store(backend, tokens=None, **kwargs):
    return NotificationStore(
        BACKEND_URL,
        tokens if tokens is not None else MemoryTokenStore("tok-123", "manager", "u1"),
        transport=backend.transport,
        **kwargs,
    )


class TestStoreRequest:

    @pytest.mark.asyncio
    async def test_posts_event(self, backend, make_event):
        async with _store(backend, company_id="ACME") as store:
            result = await store.store(make_event())

        assert result == {"success": True}
        assert store.total_stored == 1
        request = backend.requests[0]
        assert request.method == "POST"
        assert request.url.path == STORE_ENDPOINT
        assert request.headers["Authorization"] == "Bearer tok-123"
        assert backend.json_bodies()[0] == {
            "title": "Order Shipped",
            "message": "Order #123 shipped",
            "type": "order_update",
            "priority": "high",
            "targetType": "company",
            "targetIds": ["ACME"],
            "company_id": "ACME",
            "sender_id": "system",
            "sender_name": "System",
            "data": {"orderNumber": "123"},
            "timestamp": "2024-01-01T00:00:00Z",
        }

    def test_body_without_company(self, backend, make_event):
        body = _store(backend).build_body(make_event())
        assert body["targetIds"] == []
        assert body["company_id"] is None

    def test_event_sender_name_wins(self, backend, make_event):
        body = _store(backend, sender_name="Bot").build_body(make_event(sender_name="Alice"))
        assert body["sender_name"] == "Alice"

    @pytest.mark.asyncio
    async def test_empty_response_body(self, make_event):
        backend = RecordingBackend(status=201, body="")
        async with _store(backend) as store:
            assert await store.store(make_event()) == {}


class TestStoreFailures:

    @pytest.mark.asyncio
    async def test_no_token(self, backend, make_event):
        store = _store(backend, tokens=MemoryTokenStore())
        with pytest.raises(StoreFault) as exc_info:
            await store.store(make_event())
        assert exc_info.value.code == "STORE_AUTH_REQUIRED"
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_rejected_with_message(self, make_event):
        backend = RecordingBackend(status=401, body={"message": "Invalid token"})
        async with _store(backend) as store:
            with pytest.raises(StoreFault) as exc_info:
                await store.store(make_event())
        fault = exc_info.value
        assert fault.code == "STORE_REJECTED"
        assert fault.metadata["status"] == 401
        assert fault.message == "Failed to store notification: Invalid token"
        assert store.total_errors == 1

    @pytest.mark.asyncio
    async def test_rejected_with_error_field(self, make_event):
        backend = RecordingBackend(status=500, body={"error": "db down"})
        async with _store(backend) as store:
            with pytest.raises(StoreFault, match="db down"):
                await store.store(make_event())

    @pytest.mark.asyncio
    async def test_rejected_plain_text(self, make_event):
        backend = RecordingBackend(status=502, body="Bad Gateway")
        async with _store(backend) as store:
            with pytest.raises(StoreFault, match="Bad Gateway"):
                await store.store(make_event())

    @pytest.mark.asyncio
    async def test_unreachable(self, backend, make_event):
        backend.error = httpx.ConnectError("connection refused")
        async with _store(backend) as store:
            with pytest.raises(StoreFault) as exc_info:
                await store.store(make_event())
        assert exc_info.value.code == "STORE_UNAVAILABLE"
        assert exc_info.value.retryable is True
        assert store.total_errors == 1
