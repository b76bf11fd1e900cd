"""
Notification Feed - per-consumer view of the realtime channel.

A feed subscribes to a shared ConnectionManager and, for every event:

1. forwards it to the NotificationStore (fire-and-forget),
2. prepends it to a bounded history (newest first),
3. shows a system notification when permission allows.

Unmounting stops future deliveries only; the shared connection stays
open and side effects already started run to completion.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Deque, Dict, List, Optional, Set

from bizpulse.faults import Fault
from bizpulse.sockets.connection import ConnectionManager, ConnectionStatus
from bizpulse.sockets.envelope import NotificationEvent, Priority
from .notifier import DEFAULT_ICON, NotificationPermission, Notifier, display_for_event
from .store import NotificationStore

logger = logging.getLogger("bizpulse.notifications.feed")


@dataclass
class FeedEntry:
    """An event in the feed plus its read flag."""
    event: NotificationEvent
    read: bool = False
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def type(self) -> str:
        return self.event.type

    @property
    def title(self) -> str:
        return self.event.title

    @property
    def message(self) -> str:
        return self.event.message

    @property
    def priority(self) -> Priority:
        return self.event.priority

    def to_dict(self) -> Dict[str, Any]:
        return {**self.event.to_dict(), "read": self.read}


class NotificationFeed:
    """
    Bounded recent-notification history bound to a connection.

    Args:
        manager: Shared connection manager
        store: Persistence client (None disables persistence)
        notifier: System notification port (None disables display)
        history_limit: Entries kept, newest first
        poll_interval: Seconds between connection status samples
        icon: Icon for system notifications

    Example:
        async with NotificationFeed(manager, store=store, notifier=notifier) as feed:
            ...
            print(feed.notifications[0].title)
    """

    def __init__(
        self,
        manager: ConnectionManager,
        *,
        store: Optional[NotificationStore] = None,
        notifier: Optional[Notifier] = None,
        history_limit: int = 50,
        poll_interval: float = 5.0,
        icon: Optional[str] = DEFAULT_ICON,
    ):
        if history_limit < 1:
            raise ValueError("history_limit must be >= 1")
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")

        self.manager = manager
        self.store = store
        self.notifier = notifier
        self.history_limit = history_limit
        self.poll_interval = poll_interval
        self.icon = icon

        self._history: Deque[FeedEntry] = deque(maxlen=history_limit)
        self._is_connected = False
        self._mounted = False
        self._poller: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def notifications(self) -> List[FeedEntry]:
        """History, newest first."""
        return list(self._history)

    @property
    def is_connected(self) -> bool:
        """Connection flag as of the last status poll."""
        return self._is_connected

    @property
    def connection_status(self) -> ConnectionStatus:
        return self.manager.get_connection_status()

    @property
    def unread_count(self) -> int:
        return sum(1 for entry in self._history if not entry.read)

    @property
    def mounted(self) -> bool:
        return self._mounted

    def clear(self) -> None:
        self._history.clear()

    def mark_as_read(self, index: int) -> None:
        if 0 <= index < len(self._history):
            self._history[index].read = True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def mount(self) -> None:
        """Start receiving events and make sure the connection is up."""
        if self._mounted:
            return
        self._mounted = True
        self.manager.add_listener(self._on_event)
        self._poller = asyncio.create_task(self._poll_status())
        await self.manager.connect()
        self._is_connected = self.manager.is_connected

    async def unmount(self) -> None:
        """Stop receiving events; the connection is left alone."""
        if not self._mounted:
            return
        self._mounted = False
        self.manager.remove_listener(self._on_event)

        poller, self._poller = self._poller, None
        if poller is not None:
            poller.cancel()
            with suppress(asyncio.CancelledError):
                await poller

    async def flush(self) -> None:
        """Wait for in-flight persistence and display tasks."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def __aenter__(self) -> "NotificationFeed":
        await self.mount()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.unmount()

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def _on_event(self, event: NotificationEvent) -> None:
        if self.store is not None:
            self._spawn(self._persist(event))

        self._history.appendleft(FeedEntry(event))

        notifier = self.notifier
        if (
            notifier is not None
            and notifier.supported
            and notifier.permission is NotificationPermission.GRANTED
        ):
            self._spawn(self._show(event))

    async def _persist(self, event: NotificationEvent) -> None:
        try:
            await self.store.store(event)
        except Fault as fault:
            logger.log(
                fault.severity.log_level,
                "Could not store notification %r: %s", event.title, fault,
            )

    async def _show(self, event: NotificationEvent) -> None:
        try:
            await self.notifier.show(display_for_event(event, self.icon))
        except Exception as exc:
            logger.warning("System notification for %r failed: %s", event.title, exc)

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.error("Feed side effect failed", exc_info=t.exception())

        task.add_done_callback(_done)

    async def _poll_status(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            connected = self.manager.is_connected
            if connected != self._is_connected:
                logger.info("Connection status changed: connected=%s", connected)
            self._is_connected = connected

    def __repr__(self) -> str:
        return (
            f"NotificationFeed(entries={len(self._history)}/{self.history_limit}, "
            f"unread={self.unread_count}, mounted={self._mounted})"
        )
