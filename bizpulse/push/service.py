"""
Push Service - notification permission and push subscription lifecycle.

Runs independently of the realtime socket. ``initialize`` walks the
whole flow:

    supported -> secure context -> logged in -> permission
        -> worker registration -> subscription -> backend

Public operations never raise: failures are logged with a PushFault
code and reported as ``False``/``None``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set
from urllib.parse import urlsplit

import httpx

from bizpulse.auth import TokenStore, TOKEN_KEY
from bizpulse.faults import Fault
from bizpulse.notifications.notifier import NotificationPermission
from .faults import (
    PushFault,
    PUSH_BACKEND_FAILED,
    PUSH_NO_REGISTRATION,
    PUSH_NOT_AUTHENTICATED,
    PUSH_PERMISSION_DENIED,
    PUSH_REGISTRATION_FAILED,
    PUSH_SUBSCRIBE_FAILED,
    PUSH_UNSUPPORTED,
    PUSH_VAPID_MISSING,
)
from .keys import decode_vapid_public_key
from .platform import PushPlatform, PushSubscription, WorkerRegistration

logger = logging.getLogger("bizpulse.push.service")

SUBSCRIBE_ENDPOINT = "/api/notifications/subscribe"
UNSUBSCRIBE_ENDPOINT = "/api/notifications/unsubscribe"

_LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})


def is_secure_origin(origin: Optional[str]) -> bool:
    """https origins and loopback hosts count as secure."""
    if not origin:
        return True
    parts = urlsplit(origin if "://" in origin else f"http://{origin}")
    if parts.scheme in ("https", "wss"):
        return True
    return (parts.hostname or "") in _LOCAL_HOSTS


@dataclass(frozen=True)
class PermissionState:
    """
    Notification permission as flags.

    All flags are False when push is unsupported.
    """
    granted: bool = False
    denied: bool = False
    default: bool = False

    @classmethod
    def of(cls, permission: NotificationPermission) -> "PermissionState":
        return cls(
            granted=permission is NotificationPermission.GRANTED,
            denied=permission is NotificationPermission.DENIED,
            default=permission is NotificationPermission.DEFAULT,
        )

    def to_dict(self) -> Dict[str, bool]:
        return {"granted": self.granted, "denied": self.denied, "default": self.default}


class PushService:
    """
    Permission and subscription manager.

    Args:
        platform: Host push facilities
        tokens: Credential store (its change hook triggers initialisation)
        backend_url: Backend base URL for subscription bookkeeping
        vapid_public_key: URL-safe base64 application-server key
        origin: Origin the app runs under, for the secure-context check
        enabled: Master switch; False reports push as unsupported
        worker_script: Background worker script URL
        worker_scope: Worker registration scope
        timeout: HTTP timeout in seconds
        transport: Custom httpx transport (tests)
    """

    def __init__(
        self,
        platform: PushPlatform,
        tokens: TokenStore,
        *,
        backend_url: str = "http://localhost:5000",
        vapid_public_key: Optional[str] = None,
        origin: Optional[str] = None,
        enabled: bool = True,
        worker_script: str = "/sw.js",
        worker_scope: str = "/",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.platform = platform
        self.tokens = tokens
        self.backend_url = backend_url.rstrip("/")
        self.vapid_public_key = vapid_public_key
        self.origin = origin
        self.enabled = enabled
        self.worker_script = worker_script
        self.worker_scope = worker_scope
        self.timeout = timeout
        self._transport = transport

        self.initialized = False
        self._registration: Optional[WorkerRegistration] = None
        self._subscription: Optional[PushSubscription] = None
        self._client: Optional[httpx.AsyncClient] = None
        self._init_lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()

        self.tokens.subscribe(self._on_token_change)

    # ------------------------------------------------------------------
    # Capability & permission
    # ------------------------------------------------------------------

    def unsupported_reason(self) -> Optional[str]:
        """Why push is unavailable, or None when it is available."""
        if not self.enabled:
            return "disabled by configuration"
        caps = self.platform.capabilities()
        missing = [m for m in caps.missing() if m != "secure_context"]
        if missing:
            return "missing " + ", ".join(missing)
        if not caps.secure_context or not is_secure_origin(self.origin):
            return "requires a secure context (https)"
        return None

    def is_push_supported(self) -> bool:
        try:
            return self.unsupported_reason() is None
        except Exception as exc:
            logger.warning("Push capability check failed: %s", exc)
            return False

    def get_permission_state(self) -> PermissionState:
        if not self.is_push_supported():
            return PermissionState()
        return PermissionState.of(self._permission())

    def _permission(self) -> NotificationPermission:
        try:
            return self.platform.permission()
        except Exception as exc:
            logger.warning("Could not read notification permission: %s", exc)
            return NotificationPermission.DEFAULT

    async def request_permission(self) -> bool:
        """Prompt the user once; True when permission is granted."""
        if not self.is_push_supported():
            self._log_fault(PUSH_UNSUPPORTED(self._reason()))
            return False
        try:
            state = await self.platform.request_permission()
        except Exception as exc:
            logger.error("Error requesting notification permission: %s", exc)
            return False
        logger.info("Notification permission: %s", state.value)
        return state is NotificationPermission.GRANTED

    # ------------------------------------------------------------------
    # Worker & subscription
    # ------------------------------------------------------------------

    async def register_service_worker(self) -> Optional[WorkerRegistration]:
        if not self.is_push_supported():
            self._log_fault(PUSH_UNSUPPORTED(self._reason()))
            return None
        try:
            existing = await self.platform.get_registration(self.worker_scope)
            if existing is not None:
                logger.debug("Service worker already registered for %s", self.worker_scope)
                self._registration = existing
                return existing

            self._registration = await self.platform.register(self.worker_script, self.worker_scope)
        except Exception as exc:
            self._log_fault(PUSH_REGISTRATION_FAILED(self.worker_script, str(exc)))
            return None

        logger.info("Service worker %s registered", self.worker_script)
        return self._registration

    async def subscribe_to_push(self) -> Optional[PushSubscription]:
        """Existing subscription, or a new one sent to the backend."""
        if not self.is_push_supported() or self._registration is None:
            self._log_fault(PUSH_NO_REGISTRATION())
            return None

        permission = self._permission()
        if permission is not NotificationPermission.GRANTED:
            self._log_fault(PUSH_PERMISSION_DENIED(permission.value))
            if permission is NotificationPermission.DENIED:
                await self._revoke("permission denied")
            return None

        try:
            existing = await self.platform.get_subscription(self._registration)
            if existing is not None:
                logger.debug("Already subscribed to push notifications")
                self._subscription = existing
                return existing

            if not self.vapid_public_key:
                raise PUSH_VAPID_MISSING()
            server_key = decode_vapid_public_key(self.vapid_public_key)
            subscription = await self.platform.subscribe(self._registration, server_key)
        except PushFault as fault:
            self._log_fault(fault)
            return None
        except Exception as exc:
            self._log_fault(PUSH_SUBSCRIBE_FAILED(str(exc)))
            return None

        self._subscription = subscription
        logger.info("Push subscription created for %s", subscription.endpoint)
        await self._post(SUBSCRIBE_ENDPOINT, subscription.to_json())
        return subscription

    async def unsubscribe_from_push(self) -> bool:
        if self._subscription is None:
            logger.debug("No active push subscription to unsubscribe")
            return True

        try:
            revoked = await self.platform.unsubscribe(self._subscription)
        except Exception as exc:
            logger.error("Error unsubscribing from push notifications: %s", exc)
            return False

        if revoked:
            self._subscription = None
            self.initialized = False
            logger.info("Unsubscribed from push notifications")
            await self._post(UNSUBSCRIBE_ENDPOINT)
        return revoked

    async def _revoke(self, reason: str) -> None:
        if self._subscription is None:
            await self.get_current_subscription()
        if self._subscription is None:
            return
        logger.info("Revoking push subscription (%s)", reason)
        await self.unsubscribe_from_push()

    async def get_current_subscription(self) -> Optional[PushSubscription]:
        if self._registration is None:
            return None
        try:
            self._subscription = await self.platform.get_subscription(self._registration)
        except Exception as exc:
            logger.error("Error getting current subscription: %s", exc)
            return None
        return self._subscription

    def get_subscription_info(self) -> Optional[Dict[str, Any]]:
        if self._subscription is None:
            return None
        return self._subscription.to_json()

    # ------------------------------------------------------------------
    # Initialisation
    # ------------------------------------------------------------------

    async def initialize(self) -> bool:
        """Run the full setup flow; True when a subscription is active."""
        async with self._init_lock:
            try:
                self.initialized = await self._initialize()
            except Exception:
                logger.exception("Push initialisation failed")
                self.initialized = False
            return self.initialized

    async def _initialize(self) -> bool:
        reason = self._reason()
        if reason is not None:
            self._log_fault(PUSH_UNSUPPORTED(reason))
            return False

        if not self.tokens.get(TOKEN_KEY):
            self._log_fault(PUSH_NOT_AUTHENTICATED())
            return False

        permission = self._permission()
        if permission is NotificationPermission.DENIED:
            self._log_fault(PUSH_PERMISSION_DENIED(permission.value))
            await self._revoke("permission denied")
            return False
        if permission is NotificationPermission.DEFAULT:
            if not await self.request_permission():
                self._log_fault(PUSH_PERMISSION_DENIED("not granted"))
                return False

        if await self.register_service_worker() is None:
            return False

        return await self.subscribe_to_push() is not None

    async def on_visibility_change(self, visible: bool) -> bool:
        """Retry setup when the app becomes visible again."""
        if visible and not self.initialized:
            return await self.initialize()
        return self.initialized

    async def on_token_stored(self, token: Optional[str]) -> bool:
        """Retry setup after a login stored a token."""
        if token and not self.initialized:
            return await self.initialize()
        return self.initialized

    def _on_token_change(self, key: str, value: Optional[str]) -> None:
        if key != TOKEN_KEY:
            return
        if not value:
            # logout
            self.initialized = False
            if self._subscription is not None or self._registration is not None:
                self._spawn(self._revoke("logout"))
            return
        if not self.initialized:
            self._spawn(self.on_token_stored(value))

    def _spawn(self, coro) -> None:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.debug("Token changed outside an event loop; push update deferred")
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def flush(self) -> None:
        """Wait for setup and revocation started by token changes."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def close(self) -> None:
        self.tokens.unsubscribe(self._on_token_change)
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Backend
    # ------------------------------------------------------------------

    async def _post(self, endpoint: str, body: Optional[Dict[str, Any]] = None) -> bool:
        token = self.tokens.get(TOKEN_KEY)
        if not token:
            logger.warning("No authentication token found, skipping %s", endpoint)
            return False

        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.backend_url,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )

        try:
            response = await self._client.post(
                endpoint,
                json=body,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            self._log_fault(PUSH_BACKEND_FAILED(endpoint, str(exc) or type(exc).__name__))
            return False

        if not response.is_success:
            self._log_fault(PUSH_BACKEND_FAILED(endpoint, f"HTTP {response.status_code}"))
            return False

        logger.debug("Backend call %s succeeded", endpoint)
        return True

    def _reason(self) -> Optional[str]:
        try:
            return self.unsupported_reason()
        except Exception as exc:
            return f"capability check failed ({exc})"

    @staticmethod
    def _log_fault(fault: Fault) -> None:
        logger.log(fault.severity.log_level, "%s", fault)
