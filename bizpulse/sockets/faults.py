"""
WebSocket Faults - Structured error handling for the notification socket

Integrates with BizPulse's Fault system for consistent error handling.
"""

from bizpulse.faults import Fault, FaultDomain, Severity


class SocketFault(Fault):
    """Base fault for WebSocket operations."""

    def __init__(
        self,
        code: str,
        message: str,
        severity: Severity = Severity.ERROR,
        retryable: bool = False,
        **kwargs
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.NETWORK,
            severity=severity,
            retryable=retryable,
            **kwargs
        )


# Connection faults

WS_CONNECT_FAILED = lambda url="", reason="": SocketFault(
    code="WS_CONNECT_FAILED",
    message=f"Could not open WebSocket to {url}: {reason}",
    severity=Severity.WARN,
    retryable=True,
)

WS_CONNECTION_CLOSED = lambda reason="", code=None: SocketFault(
    code="WS_CONNECTION_CLOSED",
    message=f"Connection closed: {reason}",
    severity=Severity.INFO,
    retryable=True, metadata={'ws_close_code': code},
)

WS_NOT_CONNECTED = lambda: SocketFault(
    code="WS_NOT_CONNECTED",
    message="No open WebSocket connection",
    severity=Severity.WARN,
    retryable=True,
)

# Message faults

WS_MESSAGE_INVALID = lambda reason="": SocketFault(
    code="WS_MESSAGE_INVALID",
    message=f"Invalid message format: {reason}",
    severity=Severity.WARN,
    retryable=False,
)

WS_UNSUPPORTED_EVENT = lambda event="": SocketFault(
    code="WS_UNSUPPORTED_EVENT",
    message=f"Unsupported event type: {event}",
    severity=Severity.INFO,
    retryable=False,
)
