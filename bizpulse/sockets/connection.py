"""
Connection - the notification socket and its lifecycle

A ConnectionManager owns at most one WebSocket to the backend's realtime
endpoint and provides:
- connect / disconnect with an explicit state machine
- bounded exponential backoff reconnection
- the authenticate / subscribe handshake
- decoding of inbound frames and fan-out to the listener registry
- an immutable status snapshot for pollers

State machine::

    DISCONNECTED -> CONNECTING -> CONNECTED
                        ^             |  close / error
                        |             v
                        +------- RECONNECTING
                                      |  attempts exhausted
                                      v
                                DISCONNECTED (no timer pending)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Set, Tuple

from bizpulse.auth import TokenStore, MemoryTokenStore, TOKEN_KEY
from .backoff import Backoff
from .envelope import ControlMessage, ControlType, NotificationCodec
from .faults import SocketFault, WS_NOT_CONNECTED
from .registry import Listener, ListenerRegistry
from .transport import Frame, Socket, Transport, WebSocketsTransport

logger = logging.getLogger("bizpulse.sockets.connection")


class ConnectionState(str, Enum):
    """Connection lifecycle state."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


@dataclass(frozen=True)
class ConnectionStatus:
    """Point-in-time connection snapshot."""
    is_connected: bool
    reconnect_attempts: int
    max_reconnect_attempts: int
    state: ConnectionState = ConnectionState.DISCONNECTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_connected": self.is_connected,
            "reconnect_attempts": self.reconnect_attempts,
            "max_reconnect_attempts": self.max_reconnect_attempts,
            "state": self.state.value,
        }


# Channels subscribed after the server confirms authentication
BASE_CHANNELS: Tuple[str, ...] = ("notifications",)

ROLE_CHANNELS: Dict[str, Tuple[str, ...]] = {
    "manager": ("orders", "customers"),
    "customer": ("orders", "products"),
    "admin": ("orders", "customers", "products", "system"),
}


def channels_for(user_type: Optional[str]) -> Tuple[str, ...]:
    """Channels a user of the given type subscribes to."""
    return BASE_CHANNELS + ROLE_CHANNELS.get(user_type or "", ())


class ConnectionManager:
    """
    Single WebSocket to the realtime endpoint with automatic recovery.

    Construct one per application and pass it to every consumer; the
    manager is the only thing that mutates connection state.

    Args:
        url: WebSocket URL (see ``build_ws_url``)
        transport: Socket factory (defaults to ``WebSocketsTransport``)
        tokens: Credential store; without a stored token ``connect`` is a no-op
        registry: Listener registry (a fresh one by default)
        codec: Frame decoder
        backoff: Delay policy between reconnection attempts
        max_reconnect_attempts: Retries before giving up
        headers: Extra handshake headers
    """

    def __init__(
        self,
        url: str,
        *,
        transport: Optional[Transport] = None,
        tokens: Optional[TokenStore] = None,
        registry: Optional[ListenerRegistry] = None,
        codec: Optional[NotificationCodec] = None,
        backoff: Optional[Backoff] = None,
        max_reconnect_attempts: int = 5,
        headers: Optional[Mapping[str, str]] = None,
    ):
        if max_reconnect_attempts < 0:
            raise ValueError("max_reconnect_attempts must be >= 0")

        self.url = url
        self.transport = transport or WebSocketsTransport()
        self.tokens = tokens
        self.registry = registry or ListenerRegistry()
        self.codec = codec or NotificationCodec()
        self.backoff = backoff or Backoff()
        self.max_reconnect_attempts = max_reconnect_attempts
        self.headers = dict(headers or {})

        self._state = ConnectionState.DISCONNECTED
        self._reconnect_attempts = 0
        self._socket: Optional[Socket] = None
        self._reader: Optional[asyncio.Task] = None
        self._retry_handle: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()

        # Metrics
        self.connected_at: Optional[datetime] = None
        self.frames_received = 0
        self.frames_dropped = 0
        self.events_delivered = 0

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    @property
    def has_pending_retry(self) -> bool:
        return self._retry_handle is not None

    def get_connection_status(self) -> ConnectionStatus:
        return ConnectionStatus(
            is_connected=self.is_connected,
            reconnect_attempts=self._reconnect_attempts,
            max_reconnect_attempts=self.max_reconnect_attempts,
            state=self._state,
        )

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> bool:
        return self.registry.add(listener)

    def remove_listener(self, listener: Listener) -> bool:
        return self.registry.remove(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Open the socket.

        No-op while connecting or connected. While a retry is pending it
        is cancelled and the attempt made now. After reconnection gave
        up, an explicit call restores the full retry budget.
        """
        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            return

        if self.tokens is not None and not self.tokens.get(TOKEN_KEY):
            logger.debug("No auth token stored; not connecting to %s", self.url)
            return

        self._cancel_retry()
        if (
            self._state is ConnectionState.DISCONNECTED
            and self._reconnect_attempts >= self.max_reconnect_attempts
        ):
            self._reconnect_attempts = 0

        await self._attempt()

    async def disconnect(self) -> None:
        """Close the socket and stop reconnecting."""
        self._cancel_retry()
        self._state = ConnectionState.DISCONNECTED
        self._reconnect_attempts = 0

        socket, self._socket = self._socket, None
        reader, self._reader = self._reader, None

        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            with suppress(asyncio.CancelledError):
                await reader

        if socket is not None:
            await self._close_quietly(socket)
            logger.info("Disconnected from %s", self.url)

    async def update_auth(
        self,
        token: Optional[str],
        user_type: Optional[str],
        user_id: Optional[str],
    ) -> None:
        """Store new credentials; connect on login, disconnect on logout."""
        if self.tokens is None:
            self.tokens = MemoryTokenStore()
        self.tokens.store_credentials(token, user_type, user_id)

        if token and user_type and user_id:
            await self.connect()
        else:
            await self.disconnect()

    async def send(self, message: Dict[str, Any]) -> None:
        """Send a control message on the open socket."""
        if self._socket is None:
            raise WS_NOT_CONNECTED()
        await self._socket.send(self.codec.encode_control(**message))

    async def __aenter__(self) -> "ConnectionManager":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.disconnect()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _attempt(self) -> None:
        self._state = ConnectionState.CONNECTING
        logger.info("Connecting to %s", self.url)

        try:
            socket = await self.transport.open(self.url, self.headers)
        except (SocketFault, OSError) as exc:
            logger.warning("Connection to %s failed: %s", self.url, exc)
            if self._state is ConnectionState.CONNECTING:
                self._schedule_reconnect()
            return

        if self._state is not ConnectionState.CONNECTING:
            # disconnect() ran during the handshake
            await self._close_quietly(socket)
            return

        self._socket = socket
        self._state = ConnectionState.CONNECTED
        self._reconnect_attempts = 0
        self.connected_at = datetime.now(timezone.utc)
        logger.info("Connected to %s", self.url)

        self._reader = asyncio.create_task(self._read_loop(socket))
        await self._authenticate(socket)

    async def _authenticate(self, socket: Socket) -> None:
        if self.tokens is None:
            return
        creds = self.tokens.credentials()
        if not creds.token:
            return
        try:
            await socket.send(self.codec.encode_control(
                "authenticate",
                token=creds.token,
                userType=creds.user_type,
                userId=creds.user_id,
            ))
        except SocketFault as fault:
            # the reader notices the closed socket and schedules the retry
            logger.warning("Could not send authentication: %s", fault)

    async def _subscribe(self, socket: Socket) -> None:
        user_type = self.tokens.get("userType") if self.tokens is not None else None
        for channel in channels_for(user_type):
            await socket.send(self.codec.encode_control("subscribe", channel=channel))
        logger.debug("Subscribed to %s", ", ".join(channels_for(user_type)))

    async def _read_loop(self, socket: Socket) -> None:
        reason = "closed"
        try:
            while True:
                frame = await socket.recv()
                await self._handle_frame(socket, frame)
        except SocketFault as fault:
            reason = fault.message
        except Exception:
            logger.exception("Reader for %s failed", self.url)
            reason = "reader error"
            await self._close_quietly(socket)

        self._on_socket_lost(socket, reason)

    async def _handle_frame(self, socket: Socket, frame: Frame) -> None:
        self.frames_received += 1
        try:
            message = self.codec.decode(frame)
        except SocketFault as fault:
            self.frames_dropped += 1
            logger.log(fault.severity.log_level, "Dropping frame: %s", fault)
            return

        if isinstance(message, ControlMessage):
            await self._handle_control(socket, message)
            return

        self.events_delivered += 1
        self.registry.dispatch(message)

    async def _handle_control(self, socket: Socket, message: ControlMessage) -> None:
        if message.type is ControlType.AUTHENTICATED:
            logger.info("Socket authenticated")
            await self._subscribe(socket)
        elif message.type is ControlType.ERROR:
            logger.warning("Server error frame: %s", message.body.get("message"))
        else:
            logger.debug("Control frame: %s", message.type.value)

    def _on_socket_lost(self, socket: Socket, reason: str) -> None:
        if self._socket is not socket:
            # superseded or closed by disconnect()
            return
        self._socket = None
        self._reader = None
        logger.warning("Connection to %s lost: %s", self.url, reason)
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._reconnect_attempts >= self.max_reconnect_attempts:
            self._state = ConnectionState.DISCONNECTED
            logger.error(
                "Max reconnection attempts reached (%d); giving up on %s",
                self.max_reconnect_attempts, self.url,
            )
            return

        self._reconnect_attempts += 1
        delay = self.backoff.delay(self._reconnect_attempts)
        self._state = ConnectionState.RECONNECTING
        loop = asyncio.get_running_loop()
        self._retry_handle = loop.call_later(delay, self._fire_retry)
        logger.info(
            "Reconnecting in %.2fs (%d/%d)",
            delay, self._reconnect_attempts, self.max_reconnect_attempts,
        )

    def _fire_retry(self) -> None:
        self._retry_handle = None
        task = asyncio.ensure_future(self._attempt())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None

    @staticmethod
    async def _close_quietly(socket: Socket) -> None:
        try:
            await socket.close()
        except (SocketFault, OSError) as exc:
            logger.debug("Ignoring error while closing socket: %s", exc)

    def __repr__(self) -> str:
        return (
            f"ConnectionManager(url={self.url}, state={self._state.value}, "
            f"attempts={self._reconnect_attempts}/{self.max_reconnect_attempts}, "
            f"listeners={len(self.registry)})"
        )
