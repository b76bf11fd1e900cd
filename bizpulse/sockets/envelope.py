"""
Message Envelope - Typed notification protocol for the realtime socket

Provides:
- NotificationEvent: immutable event delivered to listeners
- Typed payload variants keyed by event type
- ControlMessage for handshake/subscription frames
- Schema validation and the JSON NotificationCodec

Two inbound frame shapes are accepted.

Flat (one notification event)::

    {
        "type": "order_update",
        "title": "Order Shipped",
        "message": "Order #123 shipped",
        "priority": "high",
        "timestamp": "2024-01-01T00:00:00Z",
        "data": {"orderNumber": "123"}      // optional
    }

Wrapped (backend broadcast)::

    {
        "type": "order_status_update",     // frame kind
        "notification": {                   // optional, defaults per kind
            "type": "order_update",
            "title": "...",
            "message": "...",
            "priority": "medium",
            "createdAt": "...",
            "data": {...},
            "sender_name": "..."
        },
        "order": {...}                      // optional entity snapshot
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Type, Union

from .faults import WS_MESSAGE_INVALID, WS_UNSUPPORTED_EVENT


class Priority(str, Enum):
    """Notification priority."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def requires_interaction(self) -> bool:
        """High and urgent notifications stay up until dismissed."""
        return self in (Priority.HIGH, Priority.URGENT)


class ControlType(str, Enum):
    """Server control frames consumed by the connection manager."""
    CONNECTED = "connected"
    AUTHENTICATED = "authenticated"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"
    PONG = "pong"
    ERROR = "error"


@dataclass(frozen=True)
class ControlMessage:
    """Handshake or subscription frame; never delivered to listeners."""
    type: ControlType
    body: Mapping[str, Any] = field(default_factory=dict)


# Schema validation

class Schema:
    """
    Simple schema validator for frame bodies.

    Example:
        schema = Schema({
            "type": (str, {"min_length": 1}),
            "title": str,
            "data": dict,
        }, optional={"data"})
    """

    def __init__(self, spec: Dict[str, Any], optional: Iterable[str] = ()):
        """
        Initialize schema.

        Args:
            spec: Schema specification
                - key: field name
                - value: type or (type, constraints)
            optional: Field names that may be absent or null
        """
        self.spec = spec
        self.optional = frozenset(optional)

    def validate(self, data: Mapping[str, Any]) -> tuple[bool, Optional[str]]:
        """
        Validate data against schema.

        Returns:
            (is_valid, error_message)
        """
        for name, field_spec in self.spec.items():
            if name not in data or data[name] is None:
                if name in self.optional:
                    continue
                return False, f"Missing required field: {name}"

            value = data[name]

            if isinstance(field_spec, tuple):
                expected_type, constraints = field_spec
            else:
                expected_type, constraints = field_spec, None

            if not isinstance(value, expected_type):
                return False, f"Field {name}: expected {expected_type.__name__}, got {type(value).__name__}"

            if callable(constraints):
                if not constraints(value):
                    return False, f"Field {name}: validation failed"

            elif isinstance(constraints, dict) and expected_type == str:
                if "min_length" in constraints and len(value) < constraints["min_length"]:
                    return False, f"Field {name}: must be >= {constraints['min_length']} chars"
                if "max_length" in constraints and len(value) > constraints["max_length"]:
                    return False, f"Field {name}: must be <= {constraints['max_length']} chars"

        return True, None


# Typed payloads

def _data_field(*aliases: str, kind: Any = str):
    return field(default=None, metadata={"aliases": aliases, "kind": kind})


_NUMBER = (int, float)


@dataclass(frozen=True)
class NotificationPayload:
    """
    Base class for typed event payloads.

    Each field declares the ``data`` keys it is read from (camelCase as
    the backend sends them, snake_case accepted too) and its expected
    type. Absent keys leave the field ``None``; a present key with the
    wrong type makes the whole frame invalid.
    """

    @classmethod
    def from_data(cls, data: Mapping[str, Any]) -> "NotificationPayload":
        values: Dict[str, Any] = {}
        for f in fields(cls):
            aliases = f.metadata.get("aliases") or (f.name,)
            kind = f.metadata.get("kind", str)
            for key in aliases:
                if data.get(key) is None:
                    continue
                values[f.name] = _coerce(key, data[key], kind)
                break
        return cls(**values)


def _coerce(key: str, value: Any, kind: Any) -> Any:
    if kind is _NUMBER:
        if isinstance(value, bool) or not isinstance(value, _NUMBER):
            raise WS_MESSAGE_INVALID(f"data.{key}: expected number, got {type(value).__name__}")
        return float(value)
    if kind is tuple:
        if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
            raise WS_MESSAGE_INVALID(f"data.{key}: expected list of strings")
        return tuple(value)
    if kind is str and isinstance(value, int) and not isinstance(value, bool):
        # ids and order numbers arrive as either
        return str(value)
    if not isinstance(value, kind):
        raise WS_MESSAGE_INVALID(f"data.{key}: expected {kind.__name__}, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class GenericPayload(NotificationPayload):
    """Payload for events without a typed shape; see ``NotificationEvent.data``."""


@dataclass(frozen=True)
class OrderPayload(NotificationPayload):
    order_id: Optional[str] = _data_field("orderId", "order_id", "_id")
    order_number: Optional[str] = _data_field("orderNumber", "order_number")
    status: Optional[str] = _data_field("status")
    customer_name: Optional[str] = _data_field("customerName", "customer_name")


@dataclass(frozen=True)
class ItemApprovalPayload(NotificationPayload):
    order_id: Optional[str] = _data_field("orderId", "order_id")
    item_id: Optional[str] = _data_field("itemId", "item_id", "productId")
    status: Optional[str] = _data_field("status", "approvalStatus")


@dataclass(frozen=True)
class CustomerPayload(NotificationPayload):
    customer_id: Optional[str] = _data_field("customerId", "customer_id", "_id")
    customer_name: Optional[str] = _data_field("customerName", "customer_name", "companyName", "name")


@dataclass(frozen=True)
class CategoryPayload(NotificationPayload):
    categories: Optional[Tuple[str, ...]] = _data_field("categories", "assignedCategories", kind=tuple)
    manager_id: Optional[str] = _data_field("managerId", "manager_id")


@dataclass(frozen=True)
class ProductPayload(NotificationPayload):
    product_id: Optional[str] = _data_field("productId", "product_id", "_id")
    product_name: Optional[str] = _data_field("productName", "product_name", "name")
    action: Optional[str] = _data_field("action")


@dataclass(frozen=True)
class UserPayload(NotificationPayload):
    user_id: Optional[str] = _data_field("userId", "user_id", "_id")
    user_name: Optional[str] = _data_field("userName", "user_name", "name")
    role: Optional[str] = _data_field("role", "userType")


@dataclass(frozen=True)
class InvoicePayload(NotificationPayload):
    invoice_id: Optional[str] = _data_field("invoiceId", "invoice_id", "_id")
    invoice_number: Optional[str] = _data_field("invoiceNumber", "invoice_number")
    amount: Optional[float] = _data_field("amount", "total", kind=_NUMBER)


@dataclass(frozen=True)
class PaymentPayload(NotificationPayload):
    payment_id: Optional[str] = _data_field("paymentId", "payment_id", "_id")
    invoice_id: Optional[str] = _data_field("invoiceId", "invoice_id")
    amount: Optional[float] = _data_field("amount", kind=_NUMBER)


@dataclass(frozen=True)
class SystemPayload(NotificationPayload):
    component: Optional[str] = _data_field("component", "source")
    severity: Optional[str] = _data_field("severity", "level")


@dataclass(frozen=True)
class NotificationEvent:
    """
    A notification as delivered to listeners.

    ``type`` is the tag selecting the ``payload`` variant. ``data`` is the
    raw payload mapping as sent by the backend (read-only).
    """
    type: str
    title: str
    message: str
    priority: Priority
    timestamp: str
    payload: NotificationPayload = field(default_factory=GenericPayload)
    data: Mapping[str, Any] = field(default_factory=dict)
    sender_name: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "data", MappingProxyType(dict(self.data)))

    @property
    def requires_interaction(self) -> bool:
        return self.priority.requires_interaction

    @property
    def occurred_at(self) -> datetime:
        return _parse_timestamp(self.timestamp)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the flat wire shape."""
        out = {
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "priority": self.priority.value,
            "timestamp": self.timestamp,
            "data": dict(self.data),
        }
        if self.sender_name:
            out["sender_name"] = self.sender_name
        return out


# Event kinds

@dataclass(frozen=True)
class EventKind:
    """Defaults for one backend broadcast kind (the wrapped frame ``type``)."""
    frame_type: str
    event_type: str
    title: str
    message: str
    priority: Priority
    payload: Type[NotificationPayload]
    entity: Optional[str] = None


EVENT_KINDS: Tuple[EventKind, ...] = (
    EventKind("notification", "info", "Notification",
              "You have a new notification", Priority.MEDIUM, GenericPayload),
    EventKind("category_assignment", "category_assignment", "Categories Assigned",
              "You have been assigned new categories", Priority.MEDIUM, CategoryPayload, "manager"),
    EventKind("order_status_update", "order_update", "Order Status Updated",
              "Order status has been updated", Priority.MEDIUM, OrderPayload, "order"),
    EventKind("new_order", "new_order", "New Order Received",
              "A new order has been placed", Priority.HIGH, OrderPayload, "order"),
    EventKind("customer_assignment", "customer_assignment", "Customer Assigned",
              "A customer has been assigned to you", Priority.MEDIUM, CustomerPayload, "customer"),
    EventKind("product_update", "product_update", "Product Updated",
              "A product has been updated", Priority.LOW, ProductPayload, "product"),
    EventKind("customer_created", "customer_created", "New Customer Added",
              "A new customer has been created", Priority.MEDIUM, CustomerPayload, "customer"),
    EventKind("user_created", "user_created", "New User Added",
              "A new user has been created", Priority.MEDIUM, UserPayload),
    EventKind("order_approved", "order_approved", "Order Approved",
              "An order has been approved", Priority.HIGH, OrderPayload, "order"),
    EventKind("order_rejected", "order_rejected", "Order Rejected",
              "An order has been rejected", Priority.HIGH, OrderPayload, "order"),
    EventKind("item_approval_status", "item_approval_status", "Item Approval Status Changed",
              "An item approval status has been updated", Priority.MEDIUM, ItemApprovalPayload, "order"),
    EventKind("system_alert", "system_alert", "System Alert",
              "System notification", Priority.HIGH, SystemPayload),
    EventKind("invoice", "invoice", "Invoice Notification",
              "Invoice notification", Priority.MEDIUM, InvoicePayload),
    EventKind("payment", "payment", "Payment Notification",
              "Payment notification", Priority.MEDIUM, PaymentPayload),
)

KINDS_BY_FRAME: Dict[str, EventKind] = {k.frame_type: k for k in EVENT_KINDS}

PAYLOAD_TYPES: Dict[str, Type[NotificationPayload]] = {
    k.event_type: k.payload for k in EVENT_KINDS
}


def payload_type_for(event_type: str) -> Type[NotificationPayload]:
    """Payload variant for an event ``type`` tag."""
    return PAYLOAD_TYPES.get(event_type, GenericPayload)


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# Message codec

FLAT_SCHEMA = Schema({
    "type": (str, {"min_length": 1}),
    "title": str,
    "message": str,
    "priority": str,
    "timestamp": str,
    "data": dict,
    "sender_name": str,
}, optional={"data", "sender_name"})

NOTIFICATION_BODY_SCHEMA = Schema({
    "type": str,
    "title": str,
    "message": str,
    "priority": str,
    "createdAt": str,
    "data": dict,
    "sender_name": str,
}, optional={"type", "title", "message", "priority", "createdAt", "data", "sender_name"})


class NotificationCodec:
    """
    JSON codec for the notification socket.

    ``decode`` returns a ``NotificationEvent`` or a ``ControlMessage`` and
    raises ``WS_MESSAGE_INVALID`` / ``WS_UNSUPPORTED_EVENT`` for frames
    that must not reach listeners.
    """

    def decode(self, frame: Union[str, bytes]) -> Union[NotificationEvent, ControlMessage]:
        if isinstance(frame, (bytes, bytearray)):
            try:
                frame = bytes(frame).decode("utf-8")
            except UnicodeDecodeError as exc:
                raise WS_MESSAGE_INVALID(f"not UTF-8 ({exc.reason})") from exc

        try:
            obj = json.loads(frame)
        except json.JSONDecodeError as exc:
            raise WS_MESSAGE_INVALID(f"not JSON ({exc.msg})") from exc
        except (ValueError, RecursionError) as exc:
            # oversized integer literals or nesting past the parser depth
            raise WS_MESSAGE_INVALID(f"not decodable ({type(exc).__name__})") from exc

        if not isinstance(obj, dict):
            raise WS_MESSAGE_INVALID(f"expected object, got {type(obj).__name__}")

        frame_type = obj.get("type")
        if not isinstance(frame_type, str) or not frame_type:
            raise WS_MESSAGE_INVALID("missing 'type'")

        try:
            control = ControlType(frame_type)
        except ValueError:
            control = None
        if control is not None:
            return ControlMessage(type=control, body=MappingProxyType(obj))

        if "notification" in obj or (frame_type in KINDS_BY_FRAME and "title" not in obj):
            return self._decode_wrapped(frame_type, obj)
        return self._decode_flat(obj)

    def _decode_flat(self, obj: Dict[str, Any]) -> NotificationEvent:
        ok, reason = FLAT_SCHEMA.validate(obj)
        if not ok:
            raise WS_MESSAGE_INVALID(reason)

        event_type = obj["type"]
        data = obj.get("data") or {}
        return NotificationEvent(
            type=event_type,
            title=obj["title"],
            message=obj["message"],
            priority=self._priority(obj["priority"]),
            timestamp=self._timestamp(obj["timestamp"]),
            payload=payload_type_for(event_type).from_data(data),
            data=data,
            sender_name=obj.get("sender_name"),
        )

    def _decode_wrapped(self, frame_type: str, obj: Dict[str, Any]) -> NotificationEvent:
        kind = KINDS_BY_FRAME.get(frame_type)
        if kind is None:
            raise WS_UNSUPPORTED_EVENT(frame_type)

        body = obj.get("notification") or {}
        if not isinstance(body, dict):
            raise WS_MESSAGE_INVALID("'notification' must be an object")
        ok, reason = NOTIFICATION_BODY_SCHEMA.validate(body)
        if not ok:
            raise WS_MESSAGE_INVALID(reason)

        entity = obj.get(kind.entity) if kind.entity else None
        if not isinstance(entity, dict):
            entity = {}
        data = body.get("data") or {}

        event_type = body.get("type") or kind.event_type
        message = body.get("message") or self._default_message(kind, entity)
        priority = self._priority(body["priority"]) if body.get("priority") else kind.priority
        timestamp = self._timestamp(body["createdAt"]) if body.get("createdAt") else _now_iso()

        payload_cls = PAYLOAD_TYPES.get(event_type, kind.payload)
        return NotificationEvent(
            type=event_type,
            title=body.get("title") or kind.title,
            message=message,
            priority=priority,
            timestamp=timestamp,
            payload=payload_cls.from_data({**entity, **data}),
            data=data,
            sender_name=body.get("sender_name"),
        )

    @staticmethod
    def _default_message(kind: EventKind, entity: Mapping[str, Any]) -> str:
        number = entity.get("orderNumber")
        if kind.frame_type == "order_rejected" and number:
            return f"Order {number} has been rejected"
        return kind.message

    @staticmethod
    def _priority(value: str) -> Priority:
        try:
            return Priority(value)
        except ValueError:
            raise WS_MESSAGE_INVALID(f"unknown priority {value!r}") from None

    @staticmethod
    def _timestamp(value: str) -> str:
        try:
            _parse_timestamp(value)
        except ValueError:
            raise WS_MESSAGE_INVALID(f"timestamp {value!r} is not ISO-8601") from None
        return value

    def encode(self, event: NotificationEvent) -> str:
        """Encode an event to its flat JSON form."""
        return json.dumps(event.to_dict())

    def encode_control(self, type: str, **fields: Any) -> str:
        """Encode an outbound control message (authenticate, subscribe)."""
        return json.dumps({"type": type, **fields})
