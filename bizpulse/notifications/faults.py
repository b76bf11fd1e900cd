"""
Persistence Faults - errors from the notification store side-channel.
"""

from bizpulse.faults import Fault, FaultDomain, Severity


class StoreFault(Fault):
    """Base fault for notification persistence."""

    def __init__(
        self,
        code: str,
        message: str,
        severity: Severity = Severity.WARN,
        retryable: bool = False,
        **kwargs
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.STORE,
            severity=severity,
            retryable=retryable,
            **kwargs
        )


STORE_AUTH_REQUIRED = lambda: StoreFault(
    code="STORE_AUTH_REQUIRED",
    message="Authorization token is required",
)

STORE_REJECTED = lambda status=0, reason="": StoreFault(
    code="STORE_REJECTED",
    message=f"Failed to store notification: {reason or 'Unknown error'}",
    severity=Severity.ERROR,
    metadata={"status": status},
)

STORE_UNAVAILABLE = lambda url="", reason="": StoreFault(
    code="STORE_UNAVAILABLE",
    message=f"Notification store at {url} unreachable: {reason}",
    retryable=True,
)
