"""
BizPulse Faults - Structured error handling.

Errors in BizPulse are typed fault signals carrying a stable code, a
domain, a severity and retry semantics. Transport, persistence and push
failures are all reported as faults so callers can log them uniformly.

Core exports:
- Fault: Base fault class
- FaultDomain: Domain taxonomy
- Severity: Severity levels
"""

from .core import (
    Fault,
    FaultDomain,
    Severity,
    DOMAIN_DEFAULTS,
)

__all__ = [
    "Fault",
    "FaultDomain",
    "Severity",
    "DOMAIN_DEFAULTS",
]
