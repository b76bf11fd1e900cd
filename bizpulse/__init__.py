"""
BizPulse - async client for the realtime business notification channel.

Keeps one WebSocket open to the backend, fans notification events out
to feeds, persists them through the backend and manages the separate
push-subscription channel.

    from bizpulse import ConnectionManager, NotificationFeed, MemoryTokenStore

    tokens = MemoryTokenStore(token, "manager", user_id)
    manager = ConnectionManager("wss://api.example.com/ws", tokens=tokens)
    async with NotificationFeed(manager) as feed:
        ...
"""

__version__ = "0.1.0"

from .auth import Credentials, FileTokenStore, MemoryTokenStore, TokenStore
from .config import ClientConfig, ConfigError, ConfigLoader, load_config
from .faults import Fault, FaultDomain, Severity
from .notifications import (
    FeedEntry,
    InMemoryNotifier,
    NotificationFeed,
    NotificationPermission,
    NotificationStore,
    StoreFault,
)
from .push import InMemoryPushPlatform, PushFault, PushService
from .sockets import (
    Backoff,
    ConnectionManager,
    ConnectionState,
    ConnectionStatus,
    ListenerRegistry,
    NotificationEvent,
    Priority,
    SocketFault,
    build_ws_url,
)

__all__ = [
    "__version__",
    "Credentials",
    "FileTokenStore",
    "MemoryTokenStore",
    "TokenStore",
    "ClientConfig",
    "ConfigError",
    "ConfigLoader",
    "load_config",
    "Fault",
    "FaultDomain",
    "Severity",
    "FeedEntry",
    "InMemoryNotifier",
    "NotificationFeed",
    "NotificationPermission",
    "NotificationStore",
    "StoreFault",
    "InMemoryPushPlatform",
    "PushFault",
    "PushService",
    "Backoff",
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStatus",
    "ListenerRegistry",
    "NotificationEvent",
    "Priority",
    "SocketFault",
    "build_ws_url",
]
