"""
Faults: core types and the per-subsystem fault factories.
"""

import logging

import pytest

from bizpulse.faults import Fault, FaultDomain, Severity, DOMAIN_DEFAULTS
from bizpulse.notifications import STORE_REJECTED, STORE_UNAVAILABLE, StoreFault
from bizpulse.push import PUSH_VAPID_INVALID, PushFault
from bizpulse.sockets import (
    SocketFault,
    WS_CONNECT_FAILED,
    WS_CONNECTION_CLOSED,
    WS_MESSAGE_INVALID,
)


class TestSeverity:

    def test_values(self):
        assert Severity.INFO.value == "info"
        assert Severity.FATAL.value == "fatal"

    def test_aliases(self):
        assert Severity.LOW is Severity.INFO
        assert Severity.CRITICAL is Severity.FATAL

    def test_log_level(self):
        assert Severity.WARN.log_level == logging.WARNING
        assert Severity.FATAL.log_level == logging.CRITICAL


class TestFaultDomain:

    def test_equality_by_name(self):
        assert FaultDomain.NETWORK == FaultDomain("network")
        assert FaultDomain.NETWORK == "network"

    def test_hashable(self):
        assert {FaultDomain.STORE: 1}[FaultDomain("store")] == 1

    def test_defaults_table(self):
        assert DOMAIN_DEFAULTS[FaultDomain.NETWORK]["retryable"] is True
        assert DOMAIN_DEFAULTS[FaultDomain.CONFIG]["severity"] is Severity.FATAL


class TestFault:

    def test_basic_fault(self):
        fault = Fault(code="X", message="broken", domain=FaultDomain.SYSTEM)
        assert fault.code == "X"
        assert fault.severity is Severity.FATAL
        assert fault.retryable is False
        assert fault.metadata == {}

    def test_str(self):
        fault = Fault(code="X", message="broken", domain=FaultDomain.SYSTEM)
        assert str(fault) == "[X] broken"

    def test_is_exception(self):
        with pytest.raises(Fault):
            raise Fault(code="X", message="m", domain=FaultDomain.SYSTEM)

    def test_missing_required_raises(self):
        with pytest.raises(TypeError):
            Fault(message="no code", domain=FaultDomain.SYSTEM)

    def test_to_dict(self):
        fault = Fault(code="X", message="m", domain=FaultDomain.STORE, metadata={"a": 1})
        assert fault.to_dict() == {
            "code": "X",
            "message": "m",
            "domain": "store",
            "severity": "warn",
            "retryable": False,
            "metadata": {"a": 1},
        }


class TestSocketFaults:

    def test_connect_failed_is_retryable(self):
        fault = WS_CONNECT_FAILED(url="ws://x/ws", reason="refused")
        assert isinstance(fault, SocketFault)
        assert fault.retryable is True
        assert fault.domain == FaultDomain.NETWORK
        assert "ws://x/ws" in fault.message

    def test_connection_closed_carries_code(self):
        fault = WS_CONNECTION_CLOSED(reason="bye", code=1001)
        assert fault.metadata["ws_close_code"] == 1001

    def test_message_invalid_not_retryable(self):
        assert WS_MESSAGE_INVALID("bad").retryable is False


class TestOtherFaults:

    def test_store_rejected(self):
        fault = STORE_REJECTED(status=500, reason="db down")
        assert isinstance(fault, StoreFault)
        assert fault.metadata["status"] == 500
        assert "db down" in fault.message

    def test_store_unavailable_retryable(self):
        assert STORE_UNAVAILABLE(url="u", reason="r").retryable is True

    def test_push_fault_domain(self):
        fault = PUSH_VAPID_INVALID("short")
        assert isinstance(fault, PushFault)
        assert fault.domain == FaultDomain.PUSH
        assert fault.code == "PUSH_VAPID_INVALID"
