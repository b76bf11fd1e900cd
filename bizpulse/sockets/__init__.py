"""
BizPulse Sockets - Realtime notification client

One WebSocket per ConnectionManager with:
- Bounded exponential backoff reconnection
- Auth-first handshake & role channel subscription
- Typed, validated notification events
- Ordered listener fan-out

Philosophy:
- The manager is constructed explicitly and injected into consumers
- Malformed frames are dropped at the boundary, never delivered
- The transport is a port; tests run against in-process fakes
"""

from .backoff import Backoff

from .connection import (
    ConnectionManager,
    ConnectionState,
    ConnectionStatus,
    channels_for,
)

from .envelope import (
    ControlMessage,
    ControlType,
    EventKind,
    EVENT_KINDS,
    NotificationCodec,
    NotificationEvent,
    Priority,
    Schema,
    NotificationPayload,
    GenericPayload,
    OrderPayload,
    ItemApprovalPayload,
    CustomerPayload,
    CategoryPayload,
    ProductPayload,
    UserPayload,
    InvoicePayload,
    PaymentPayload,
    SystemPayload,
    payload_type_for,
)

from .faults import (
    SocketFault,
    WS_CONNECT_FAILED,
    WS_CONNECTION_CLOSED,
    WS_NOT_CONNECTED,
    WS_MESSAGE_INVALID,
    WS_UNSUPPORTED_EVENT,
)

from .registry import Listener, ListenerRegistry

from .transport import (
    Frame,
    Socket,
    Transport,
    WebSocketsTransport,
    build_ws_url,
)

__all__ = [
    # Connection
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStatus",
    "channels_for",
    "Backoff",
    # Envelope
    "ControlMessage",
    "ControlType",
    "EventKind",
    "EVENT_KINDS",
    "NotificationCodec",
    "NotificationEvent",
    "Priority",
    "Schema",
    "NotificationPayload",
    "GenericPayload",
    "OrderPayload",
    "ItemApprovalPayload",
    "CustomerPayload",
    "CategoryPayload",
    "ProductPayload",
    "UserPayload",
    "InvoicePayload",
    "PaymentPayload",
    "SystemPayload",
    "payload_type_for",
    # Faults
    "SocketFault",
    "WS_CONNECT_FAILED",
    "WS_CONNECTION_CLOSED",
    "WS_NOT_CONNECTED",
    "WS_MESSAGE_INVALID",
    "WS_UNSUPPORTED_EVENT",
    # Registry
    "Listener",
    "ListenerRegistry",
    # Transport
    "Frame",
    "Socket",
    "Transport",
    "WebSocketsTransport",
    "build_ws_url",
]
