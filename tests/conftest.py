"""
Shared test fixtures and helpers for the BizPulse test suite.
"""

import json
from typing import Any, Callable, Dict, List

import httpx
import pytest

from bizpulse.auth import MemoryTokenStore
from bizpulse.sockets import Backoff, ConnectionManager, NotificationCodec
from bizpulse.testing import FakeTransport

WS_URL = "ws://backend.test/ws"
BACKEND_URL = "http://backend.test"


# ============================================================================
# Frames & events
# ============================================================================


def _frame(**overrides: Any) -> Dict[str, Any]:
    frame = {
        "type": "order_update",
        "title": "Order Shipped",
        "message": "Order #123 shipped",
        "priority": "high",
        "timestamp": "2024-01-01T00:00:00Z",
        "data": {"orderNumber": "123"},
    }
    frame.update(overrides)
    return frame


@pytest.fixture
def make_frame() -> Callable[..., Dict[str, Any]]:
    """Flat notification frame; keyword arguments override fields."""
    return _frame


@pytest.fixture
def make_event():
    """Decoded NotificationEvent built from a flat frame."""
    codec = NotificationCodec()

    def factory(**overrides: Any):
        return codec.decode(json.dumps(_frame(**overrides)))

    return factory


# ============================================================================
# Connection
# ============================================================================


@pytest.fixture
def tokens() -> MemoryTokenStore:
    return MemoryTokenStore("tok-123", "manager", "u1")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def manager(transport, tokens) -> ConnectionManager:
    """Manager with zero-delay retries so reconnection runs immediately."""
    return ConnectionManager(
        WS_URL,
        transport=transport,
        tokens=tokens,
        backoff=Backoff(base=0.0, jitter=False),
        max_reconnect_attempts=5,
    )


# ============================================================================
# HTTP
# ============================================================================


class RecordingBackend:
    """httpx.MockTransport handler that records requests."""

    def __init__(self, status: int = 200, body: Any = None):
        self.status = status
        self.body = {"success": True} if body is None else body
        self.requests: List[httpx.Request] = []
        self.error: Exception = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if isinstance(self.body, (dict, list)):
            return httpx.Response(self.status, json=self.body)
        return httpx.Response(self.status, text=self.body)

    def json_bodies(self) -> List[Any]:
        return [json.loads(r.content) if r.content else None for r in self.requests]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()
