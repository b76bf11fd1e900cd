"""
Envelope: decoding flat and wrapped frames, control frames, validation.
"""

import json
import sys

import pytest

from bizpulse.sockets import (
    CategoryPayload,
    ControlMessage,
    ControlType,
    GenericPayload,
    InvoicePayload,
    NotificationCodec,
    NotificationEvent,
    OrderPayload,
    Priority,
    Schema,
    SocketFault,
)


@pytest.fixture
def codec():
    return NotificationCodec()


# ============================================================================
# Flat frames
# ============================================================================


class TestFlatFrames:

    def test_order_shipped(self, codec, make_frame):
        event = codec.decode(json.dumps(make_frame()))
        assert isinstance(event, NotificationEvent)
        assert event.type == "order_update"
        assert event.title == "Order Shipped"
        assert event.message == "Order #123 shipped"
        assert event.priority is Priority.HIGH
        assert event.timestamp == "2024-01-01T00:00:00Z"
        assert isinstance(event.payload, OrderPayload)
        assert event.payload.order_number == "123"
        assert event.requires_interaction is True

    def test_bytes_frame(self, codec, make_frame):
        event = codec.decode(json.dumps(make_frame()).encode("utf-8"))
        assert event.title == "Order Shipped"

    def test_data_is_optional(self, codec, make_frame):
        frame = make_frame()
        del frame["data"]
        event = codec.decode(json.dumps(frame))
        assert dict(event.data) == {}
        assert event.payload.order_number is None

    def test_data_is_read_only(self, codec, make_frame):
        event = codec.decode(json.dumps(make_frame()))
        with pytest.raises(TypeError):
            event.data["orderNumber"] = "999"

    def test_unknown_type_gets_generic_payload(self, codec, make_frame):
        event = codec.decode(json.dumps(make_frame(type="custom_thing", data={"x": 1})))
        assert isinstance(event.payload, GenericPayload)
        assert event.data["x"] == 1

    def test_integer_ids_become_strings(self, codec, make_frame):
        event = codec.decode(json.dumps(make_frame(data={"orderNumber": 1042})))
        assert event.payload.order_number == "1042"

    def test_invoice_amount(self, codec, make_frame):
        event = codec.decode(json.dumps(make_frame(type="invoice", data={"amount": 10})))
        assert isinstance(event.payload, InvoicePayload)
        assert event.payload.amount == 10.0

    def test_sender_name(self, codec, make_frame):
        event = codec.decode(json.dumps(make_frame(sender_name="Alice")))
        assert event.sender_name == "Alice"

    def test_occurred_at(self, codec, make_frame):
        event = codec.decode(json.dumps(make_frame()))
        assert event.occurred_at.year == 2024
        assert event.occurred_at.tzinfo is not None


# ============================================================================
# Wrapped frames
# ============================================================================


class TestWrappedFrames:

    def test_defaults_from_kind(self, codec):
        frame = {
            "type": "new_order",
            "order": {"_id": "o1", "orderNumber": "1042", "customerName": "Acme"},
        }
        event = codec.decode(json.dumps(frame))
        assert event.type == "new_order"
        assert event.title == "New Order Received"
        assert event.priority is Priority.HIGH
        assert event.payload == OrderPayload(order_id="o1", order_number="1042", customer_name="Acme")
        assert event.occurred_at is not None

    def test_status_update_maps_to_order_update(self, codec):
        event = codec.decode(json.dumps({"type": "order_status_update", "order": {}}))
        assert event.type == "order_update"
        assert event.priority is Priority.MEDIUM

    def test_notification_body_overrides(self, codec):
        frame = {
            "type": "notification",
            "notification": {
                "title": "Hello",
                "message": "World",
                "priority": "urgent",
                "createdAt": "2024-05-01T10:00:00Z",
                "sender_name": "Ops",
            },
        }
        event = codec.decode(json.dumps(frame))
        assert event.type == "info"
        assert event.title == "Hello"
        assert event.message == "World"
        assert event.priority is Priority.URGENT
        assert event.timestamp == "2024-05-01T10:00:00Z"
        assert event.sender_name == "Ops"

    def test_rejected_message_names_order(self, codec):
        frame = {"type": "order_rejected", "order": {"orderNumber": "77"}}
        event = codec.decode(json.dumps(frame))
        assert event.message == "Order 77 has been rejected"

    def test_category_assignment(self, codec):
        frame = {
            "type": "category_assignment",
            "notification": {"data": {"categories": ["tools", "paint"]}},
            "manager": {"managerId": "m1"},
        }
        event = codec.decode(json.dumps(frame))
        assert event.payload == CategoryPayload(categories=("tools", "paint"), manager_id="m1")

    def test_product_update_is_low(self, codec):
        event = codec.decode(json.dumps({"type": "product_update", "product": {"name": "Saw"}}))
        assert event.priority is Priority.LOW
        assert event.payload.product_name == "Saw"

    def test_unknown_wrapped_kind(self, codec):
        with pytest.raises(SocketFault) as exc_info:
            codec.decode(json.dumps({"type": "mystery", "notification": {"title": "x"}}))
        assert exc_info.value.code == "WS_UNSUPPORTED_EVENT"


# ============================================================================
# Control frames
# ============================================================================


class TestControlFrames:

    @pytest.mark.parametrize("kind", ["connected", "authenticated", "subscribed", "pong", "error"])
    def test_control_types(self, codec, kind):
        msg = codec.decode(json.dumps({"type": kind, "message": "ok"}))
        assert isinstance(msg, ControlMessage)
        assert msg.type is ControlType(kind)
        assert msg.body["message"] == "ok"


# ============================================================================
# Invalid frames
# ============================================================================


class TestInvalidFrames:

    @pytest.mark.parametrize("raw", [
        "not json",
        "[1, 2]",
        "42",
        json.dumps({"title": "no type"}),
        json.dumps({"type": ""}),
        pytest.param("[" * 100_000, id="deep-nesting"),
        pytest.param('{"type": "order_update", "n": ' + "9" * 5000 + "}", id="huge-integer"),
    ])
    def test_rejected(self, codec, raw):
        with pytest.raises(SocketFault) as exc_info:
            codec.decode(raw)
        assert exc_info.value.code == "WS_MESSAGE_INVALID"

    def test_invalid_utf8(self, codec):
        with pytest.raises(SocketFault):
            codec.decode(b"\xff\xfe{")

    @pytest.mark.skipif(not hasattr(sys, "get_int_max_str_digits"), reason="no int digit limit")
    def test_oversized_integer(self, codec, make_frame):
        frame = json.dumps(make_frame(data={"n": 0}))
        raw = frame.replace('"n": 0', '"n": ' + "9" * 5000)
        with pytest.raises(SocketFault) as exc_info:
            codec.decode(raw)
        assert exc_info.value.code == "WS_MESSAGE_INVALID"

    def test_missing_message(self, codec, make_frame):
        frame = make_frame()
        del frame["message"]
        with pytest.raises(SocketFault, match="message"):
            codec.decode(json.dumps(frame))

    def test_unknown_priority(self, codec, make_frame):
        with pytest.raises(SocketFault, match="priority"):
            codec.decode(json.dumps(make_frame(priority="critical")))

    def test_bad_timestamp(self, codec, make_frame):
        with pytest.raises(SocketFault, match="timestamp"):
            codec.decode(json.dumps(make_frame(timestamp="yesterday")))

    def test_data_must_be_object(self, codec, make_frame):
        with pytest.raises(SocketFault):
            codec.decode(json.dumps(make_frame(data=[1, 2])))

    def test_payload_type_mismatch(self, codec, make_frame):
        with pytest.raises(SocketFault, match="amount"):
            codec.decode(json.dumps(make_frame(type="invoice", data={"amount": "ten"})))

    def test_bool_is_not_a_number(self, codec, make_frame):
        with pytest.raises(SocketFault):
            codec.decode(json.dumps(make_frame(type="payment", data={"amount": True})))


# ============================================================================
# Encoding & schema
# ============================================================================


class TestEncoding:

    def test_encode_flat(self, codec, make_frame):
        frame = make_frame(sender_name="Ops")
        event = codec.decode(json.dumps(frame))
        assert json.loads(codec.encode(event)) == frame

    def test_encode_control(self, codec):
        raw = codec.encode_control("subscribe", channel="orders")
        assert json.loads(raw) == {"type": "subscribe", "channel": "orders"}


class TestSchema:

    def test_min_length(self):
        schema = Schema({"name": (str, {"min_length": 2})})
        assert schema.validate({"name": "ab"}) == (True, None)
        ok, reason = schema.validate({"name": "a"})
        assert not ok
        assert ">= 2" in reason

    def test_callable_constraint(self):
        schema = Schema({"n": (int, lambda v: v > 0)})
        assert schema.validate({"n": 1})[0]
        assert not schema.validate({"n": 0})[0]

    def test_optional_null(self):
        schema = Schema({"a": str}, optional={"a"})
        assert schema.validate({"a": None}) == (True, None)
