"""
Push Faults - permission, registration and subscription failures.

Public PushService operations report these through logging and return
``False``/``None``; the codes keep log output greppable.
"""

from bizpulse.faults import Fault, FaultDomain, Severity


class PushFault(Fault):
    """Base fault for the push channel."""

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
            domain=FaultDomain.PUSH,
            severity=severity,
            retryable=retryable,
            **kwargs
        )


PUSH_UNSUPPORTED = lambda reason="": PushFault(
    code="PUSH_UNSUPPORTED",
    message=f"Push notifications unavailable: {reason}",
    severity=Severity.INFO,
)

PUSH_NOT_AUTHENTICATED = lambda: PushFault(
    code="PUSH_NOT_AUTHENTICATED",
    message="No auth token stored; push setup deferred until login",
    severity=Severity.INFO,
)

PUSH_PERMISSION_DENIED = lambda state="denied": PushFault(
    code="PUSH_PERMISSION_DENIED",
    message=f"Notification permission not granted ({state})",
)

PUSH_NO_REGISTRATION = lambda: PushFault(
    code="PUSH_NO_REGISTRATION",
    message="Service worker not registered",
)

PUSH_REGISTRATION_FAILED = lambda script="", reason="": PushFault(
    code="PUSH_REGISTRATION_FAILED",
    message=f"Service worker {script} registration failed: {reason}",
    severity=Severity.ERROR,
    retryable=True,
)

PUSH_VAPID_MISSING = lambda: PushFault(
    code="PUSH_VAPID_MISSING",
    message="VAPID public key not configured - push notifications disabled",
)

PUSH_VAPID_INVALID = lambda reason="": PushFault(
    code="PUSH_VAPID_INVALID",
    message=f"Invalid VAPID public key: {reason}",
    severity=Severity.ERROR,
)

PUSH_SUBSCRIBE_FAILED = lambda reason="": PushFault(
    code="PUSH_SUBSCRIBE_FAILED",
    message=f"Push subscription failed: {reason}",
    severity=Severity.ERROR,
    retryable=True,
)

PUSH_BACKEND_FAILED = lambda endpoint="", reason="": PushFault(
    code="PUSH_BACKEND_FAILED",
    message=f"Backend call {endpoint} failed: {reason}",
    severity=Severity.ERROR,
    retryable=True,
)
