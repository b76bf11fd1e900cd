"""
BizPulse Push - permission and push subscription management.

Independent of the realtime socket:
- PushService: permission -> worker registration -> subscription
- PushPlatform: port over the host push facilities
- worker: display and click handling for push messages
"""

from .faults import (
    PushFault,
    PUSH_UNSUPPORTED,
    PUSH_NOT_AUTHENTICATED,
    PUSH_PERMISSION_DENIED,
    PUSH_NO_REGISTRATION,
    PUSH_REGISTRATION_FAILED,
    PUSH_VAPID_MISSING,
    PUSH_VAPID_INVALID,
    PUSH_SUBSCRIBE_FAILED,
    PUSH_BACKEND_FAILED,
)

from .keys import decode_vapid_public_key, generate_vapid_public_key

from .platform import (
    InMemoryPushPlatform,
    PushCapabilities,
    PushPlatform,
    PushSubscription,
    WorkerRegistration,
)

from .service import PermissionState, PushService, SUBSCRIBE_ENDPOINT, UNSUBSCRIBE_ENDPOINT

from .worker import ClickOutcome, build_push_display, resolve_click

__all__ = [
    "PushService",
    "PermissionState",
    "SUBSCRIBE_ENDPOINT",
    "UNSUBSCRIBE_ENDPOINT",
    "PushPlatform",
    "InMemoryPushPlatform",
    "PushCapabilities",
    "PushSubscription",
    "WorkerRegistration",
    "decode_vapid_public_key",
    "generate_vapid_public_key",
    "ClickOutcome",
    "build_push_display",
    "resolve_click",
    "PushFault",
    "PUSH_UNSUPPORTED",
    "PUSH_NOT_AUTHENTICATED",
    "PUSH_PERMISSION_DENIED",
    "PUSH_NO_REGISTRATION",
    "PUSH_REGISTRATION_FAILED",
    "PUSH_VAPID_MISSING",
    "PUSH_VAPID_INVALID",
    "PUSH_SUBSCRIBE_FAILED",
    "PUSH_BACKEND_FAILED",
]
