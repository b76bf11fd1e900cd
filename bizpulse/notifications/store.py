"""
Notification Store - persists realtime events through the backend.

Every event a feed receives is forwarded to
``POST /api/notifications/store-realtime`` with the user's bearer token
so the notification centre can list it later.

Usage::

    store = NotificationStore("http://localhost:5000", tokens, company_id="ACME")
    async with store:
        await store.store(event)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from bizpulse.auth import TokenStore, TOKEN_KEY
from bizpulse.sockets.envelope import NotificationEvent
from .faults import STORE_AUTH_REQUIRED, STORE_REJECTED, STORE_UNAVAILABLE

logger = logging.getLogger("bizpulse.notifications.store")

STORE_ENDPOINT = "/api/notifications/store-realtime"


class NotificationStore:
    """
    HTTP client for the persistence endpoint.

    Args:
        backend_url: Backend base URL
        tokens: Credential store supplying the bearer token
        company_id: Tenant the notification is filed under
        target_type: Audience type recorded with the notification
        sender_id: Sender id recorded with the notification
        sender_name: Sender display name
        timeout: Request timeout in seconds
        transport: Custom httpx transport (tests pass ``httpx.MockTransport``)
    """

    def __init__(
        self,
        backend_url: str,
        tokens: TokenStore,
        *,
        company_id: Optional[str] = None,
        target_type: str = "company",
        sender_id: str = "system",
        sender_name: str = "System",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.backend_url = backend_url.rstrip("/")
        self.tokens = tokens
        self.company_id = company_id
        self.target_type = target_type
        self.sender_id = sender_id
        self.sender_name = sender_name
        self.timeout = timeout
        self._transport = transport

        self._client: Optional[httpx.AsyncClient] = None

        # Metrics
        self.total_stored = 0
        self.total_errors = 0

    # ── Lifecycle ───────────────────────────────────────────────────

    async def initialize(self) -> None:
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self.backend_url,
            headers={"Content-Type": "application/json", "User-Agent": "bizpulse/1.0"},
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport,
        )

    async def shutdown(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        logger.debug(
            "Notification store closed (stored=%d, errors=%d)",
            self.total_stored, self.total_errors,
        )

    async def __aenter__(self) -> "NotificationStore":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.shutdown()

    # ── Payload ─────────────────────────────────────────────────────

    def build_body(self, event: NotificationEvent) -> Dict[str, Any]:
        """Request body for one event."""
        return {
            "title": event.title,
            "message": event.message,
            "type": event.type,
            "priority": event.priority.value,
            "targetType": self.target_type,
            "targetIds": [self.company_id] if self.company_id else [],
            "company_id": self.company_id,
            "sender_id": self.sender_id,
            "sender_name": event.sender_name or self.sender_name,
            "data": dict(event.data),
            "timestamp": event.timestamp,
        }

    # ── Store ───────────────────────────────────────────────────────

    async def store(self, event: NotificationEvent) -> Dict[str, Any]:
        """
        Persist one event.

        Returns:
            The backend's JSON response (empty when it sent none)

        Raises:
            StoreFault: STORE_AUTH_REQUIRED, STORE_REJECTED or STORE_UNAVAILABLE
        """
        token = self.tokens.get(TOKEN_KEY)
        if not token:
            raise STORE_AUTH_REQUIRED()

        await self.initialize()
        url = self.backend_url + STORE_ENDPOINT
        try:
            response = await self._client.post(
                STORE_ENDPOINT,
                json=self.build_body(event),
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            self.total_errors += 1
            raise STORE_UNAVAILABLE(url=url, reason=str(exc) or type(exc).__name__) from exc

        if not response.is_success:
            self.total_errors += 1
            raise STORE_REJECTED(
                status=response.status_code,
                reason=self._error_message(response),
            )

        self.total_stored += 1
        logger.debug("Stored notification %r (%s)", event.title, event.type)
        try:
            return response.json()
        except ValueError:
            return {}

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(body, dict):
            message = body.get("message") or body.get("error")
            if message:
                return str(message)
        return f"HTTP {response.status_code}"
