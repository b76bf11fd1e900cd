"""
Transport - the WebSocket port used by the connection manager.

The manager only needs three things from a socket: receive a frame,
send a text frame, and close. ``WebSocketsTransport`` provides them
over the ``websockets`` client; tests substitute an in-process fake
(see ``bizpulse.testing``).

Both implementations report failures as ``SocketFault``:
- ``WS_CONNECT_FAILED`` when the handshake cannot be completed
- ``WS_CONNECTION_CLOSED`` from ``recv``/``send`` once the peer is gone
"""

from __future__ import annotations

import asyncio
import logging
from typing import Mapping, Optional, Protocol, Union
from urllib.parse import urlsplit

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from .faults import WS_CONNECT_FAILED, WS_CONNECTION_CLOSED

logger = logging.getLogger("bizpulse.sockets.transport")

Frame = Union[str, bytes]


class Socket(Protocol):
    """An open WebSocket."""

    async def recv(self) -> Frame:
        """Next inbound frame; raises WS_CONNECTION_CLOSED when closed."""
        ...

    async def send(self, data: str) -> None:
        ...

    async def close(self, code: int = 1000, reason: str = "") -> None:
        ...


class Transport(Protocol):
    """Opens sockets."""

    async def open(self, url: str, headers: Optional[Mapping[str, str]] = None) -> Socket:
        ...


def build_ws_url(backend_url: str, path: str = "/ws", *, secure: Optional[bool] = None) -> str:
    """
    Derive the notification socket URL from the backend URL.

    ``http`` maps to ``ws`` and ``https`` to ``wss``. A bare ``host:port``
    uses ``wss`` only when ``secure`` is set. Any path on the backend URL
    is replaced by ``path``.

        >>> build_ws_url("https://api.example.com/")
        'wss://api.example.com/ws'
        >>> build_ws_url("localhost:5000")
        'ws://localhost:5000/ws'
    """
    raw = backend_url.strip()
    if "://" not in raw:
        raw = ("https://" if secure else "http://") + raw

    parts = urlsplit(raw)
    if parts.scheme in ("https", "wss"):
        scheme = "wss"
    elif parts.scheme in ("http", "ws"):
        scheme = "wss" if secure else "ws"
    else:
        raise ValueError(f"Unsupported backend URL scheme: {parts.scheme!r}")

    if not parts.netloc:
        raise ValueError(f"Backend URL has no host: {backend_url!r}")

    if not path.startswith("/"):
        path = "/" + path
    return f"{scheme}://{parts.netloc}{path}"


class _WebSocketsSocket:
    """Adapter from a ``websockets`` client connection to ``Socket``."""

    def __init__(self, connection):
        self._connection = connection

    async def recv(self) -> Frame:
        try:
            return await self._connection.recv()
        except ConnectionClosed as exc:
            rcvd = exc.rcvd
            raise WS_CONNECTION_CLOSED(
                reason=(rcvd.reason if rcvd else "") or "no close frame",
                code=rcvd.code if rcvd else None,
            ) from exc

    async def send(self, data: str) -> None:
        try:
            await self._connection.send(data)
        except ConnectionClosed as exc:
            raise WS_CONNECTION_CLOSED(reason="send on closed socket") from exc

    async def close(self, code: int = 1000, reason: str = "") -> None:
        await self._connection.close(code=code, reason=reason)


class WebSocketsTransport:
    """
    Transport backed by the ``websockets`` asyncio client.

    Args:
        open_timeout: Handshake timeout in seconds
        ping_interval: Keepalive ping interval (None disables pings)
    """

    def __init__(self, open_timeout: float = 10.0, ping_interval: Optional[float] = 20.0):
        self.open_timeout = open_timeout
        self.ping_interval = ping_interval

    async def open(self, url: str, headers: Optional[Mapping[str, str]] = None) -> Socket:
        try:
            connection = await websockets.connect(
                url,
                additional_headers=dict(headers or {}),
                open_timeout=self.open_timeout,
                ping_interval=self.ping_interval,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            raise WS_CONNECT_FAILED(url=url, reason=str(exc) or type(exc).__name__) from exc

        logger.debug("WebSocket handshake with %s complete", url)
        return _WebSocketsSocket(connection)
