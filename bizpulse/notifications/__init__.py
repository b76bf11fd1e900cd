"""
BizPulse Notifications - consumer side of the realtime channel.

- NotificationFeed: bounded history bound to a ConnectionManager
- NotificationStore: persistence through the backend
- Notifier: system notification port
"""

from .faults import (
    StoreFault,
    STORE_AUTH_REQUIRED,
    STORE_REJECTED,
    STORE_UNAVAILABLE,
)

from .feed import FeedEntry, NotificationFeed

from .notifier import (
    ConsoleNotifier,
    DisplayRequest,
    InMemoryNotifier,
    NotificationAction,
    NotificationPermission,
    Notifier,
    display_for_event,
)

from .store import NotificationStore, STORE_ENDPOINT

__all__ = [
    "FeedEntry",
    "NotificationFeed",
    "NotificationStore",
    "STORE_ENDPOINT",
    "StoreFault",
    "STORE_AUTH_REQUIRED",
    "STORE_REJECTED",
    "STORE_UNAVAILABLE",
    "ConsoleNotifier",
    "DisplayRequest",
    "InMemoryNotifier",
    "NotificationAction",
    "NotificationPermission",
    "Notifier",
    "display_for_event",
]
