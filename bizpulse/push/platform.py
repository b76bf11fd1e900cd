"""
Push Platform - port over the host's push facilities.

The platform provides capability flags, the notification permission,
background worker registrations and push subscriptions. PushService
drives it; ``InMemoryPushPlatform`` implements it in-process.
"""

from __future__ import annotations

import logging
import os
import secrets
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from cryptography.hazmat.primitives.asymmetric import ec

from bizpulse.notifications.notifier import NotificationPermission
from .keys import b64encode, public_key_bytes

logger = logging.getLogger("bizpulse.push.platform")


@dataclass(frozen=True)
class PushCapabilities:
    """Host feature flags."""
    service_worker: bool = True
    push_manager: bool = True
    notifications: bool = True
    secure_context: bool = True

    def missing(self) -> List[str]:
        """Names of absent features."""
        return [name for name, present in vars(self).items() if not present]


@dataclass(frozen=True)
class WorkerRegistration:
    """A registered background worker."""
    script_url: str
    scope: str


@dataclass(frozen=True)
class PushSubscription:
    """
    Push endpoint credential.

    ``p256dh`` is the subscriber's P-256 public key and ``auth`` the
    shared authentication secret.
    """
    endpoint: str
    p256dh: bytes = field(repr=False)
    auth: bytes = field(repr=False)

    def to_json(self) -> Dict[str, Any]:
        """Wire shape sent to the backend."""
        return {
            "endpoint": self.endpoint,
            "keys": {
                "p256dh": b64encode(self.p256dh),
                "auth": b64encode(self.auth),
            },
        }


class PushPlatform(Protocol):
    """Host push facilities."""

    def capabilities(self) -> PushCapabilities:
        ...

    def permission(self) -> NotificationPermission:
        ...

    async def request_permission(self) -> NotificationPermission:
        ...

    async def get_registration(self, scope: str) -> Optional[WorkerRegistration]:
        ...

    async def register(self, script_url: str, scope: str) -> WorkerRegistration:
        ...

    async def get_subscription(self, registration: WorkerRegistration) -> Optional[PushSubscription]:
        ...

    async def subscribe(
        self,
        registration: WorkerRegistration,
        application_server_key: bytes,
    ) -> PushSubscription:
        ...

    async def unsubscribe(self, subscription: PushSubscription) -> bool:
        ...


class InMemoryPushPlatform:
    """
    In-process push platform.

    Subscriptions carry a freshly generated P-256 key and a random auth
    secret. Set ``fail_register`` / ``fail_subscribe`` / ``fail_unsubscribe``
    to an exception to make the matching call raise it.

    Args:
        capabilities: Feature flags
        permission: Initial permission state
        prompt_result: Permission the user picks when prompted
        endpoint_base: Prefix for generated endpoints
    """

    def __init__(
        self,
        capabilities: Optional[PushCapabilities] = None,
        permission: NotificationPermission = NotificationPermission.DEFAULT,
        *,
        prompt_result: NotificationPermission = NotificationPermission.GRANTED,
        endpoint_base: str = "https://push.bizpulse.local/send",
    ):
        self._capabilities = capabilities or PushCapabilities()
        self._permission = permission
        self.prompt_result = prompt_result
        self.endpoint_base = endpoint_base.rstrip("/")

        self.prompts = 0
        self.registrations: Dict[str, WorkerRegistration] = {}
        self.subscriptions: Dict[str, PushSubscription] = {}
        self.server_keys: Dict[str, bytes] = {}

        self.fail_register: Optional[Exception] = None
        self.fail_subscribe: Optional[Exception] = None
        self.fail_unsubscribe: Optional[Exception] = None

    def capabilities(self) -> PushCapabilities:
        return self._capabilities

    def permission(self) -> NotificationPermission:
        return self._permission

    def set_permission(self, permission: NotificationPermission) -> None:
        """Simulate the user changing the decision in host settings."""
        self._permission = permission

    async def request_permission(self) -> NotificationPermission:
        self.prompts += 1
        if self._permission is NotificationPermission.DEFAULT:
            self._permission = self.prompt_result
        return self._permission

    async def get_registration(self, scope: str) -> Optional[WorkerRegistration]:
        return self.registrations.get(scope)

    async def register(self, script_url: str, scope: str) -> WorkerRegistration:
        if self.fail_register is not None:
            raise self.fail_register
        registration = WorkerRegistration(script_url=script_url, scope=scope)
        self.registrations[scope] = registration
        logger.debug("Registered worker %s for scope %s", script_url, scope)
        return registration

    async def get_subscription(self, registration: WorkerRegistration) -> Optional[PushSubscription]:
        return self.subscriptions.get(registration.scope)

    async def subscribe(
        self,
        registration: WorkerRegistration,
        application_server_key: bytes,
    ) -> PushSubscription:
        if self.fail_subscribe is not None:
            raise self.fail_subscribe
        if self._permission is not NotificationPermission.GRANTED:
            raise PermissionError("notification permission not granted")

        client_key = ec.generate_private_key(ec.SECP256R1())
        subscription = PushSubscription(
            endpoint=f"{self.endpoint_base}/{secrets.token_urlsafe(16)}",
            p256dh=public_key_bytes(client_key.public_key()),
            auth=os.urandom(16),
        )
        self.subscriptions[registration.scope] = subscription
        self.server_keys[registration.scope] = application_server_key
        return subscription

    async def unsubscribe(self, subscription: PushSubscription) -> bool:
        if self.fail_unsubscribe is not None:
            raise self.fail_unsubscribe
        for scope, current in list(self.subscriptions.items()):
            if current == subscription:
                del self.subscriptions[scope]
                self.server_keys.pop(scope, None)
                return True
        return False
