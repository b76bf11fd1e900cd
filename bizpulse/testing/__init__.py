"""
BizPulse Testing - fakes for exercising the client without a network.

Components:
    - FakeTransport:  Transport handing out in-process sockets
    - FakeSocket:     Queue-backed socket with drop/close injection
    - wait_until:     Poll a condition inside the event loop
"""

from .sockets import FakeSocket, FakeTransport, wait_until

__all__ = [
    "FakeSocket",
    "FakeTransport",
    "wait_until",
]
