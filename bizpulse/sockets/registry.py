"""
Listener Registry - fan-out of decoded events to subscribers.

Listeners are kept in insertion order and keyed by the callable itself,
so adding the same callable twice registers it once. Delivery is a plain
loop of function calls; a listener returning an awaitable gets its own
task.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Set, Union

logger = logging.getLogger("bizpulse.sockets.registry")

Listener = Callable[[Any], Union[None, Awaitable[None]]]


class ListenerRegistry:
    """
    Ordered set of event listeners.

    Example:
        registry = ListenerRegistry()
        registry.add(on_event)
        registry.dispatch(event)
        registry.remove(on_event)
    """

    def __init__(self):
        # dict preserves insertion order
        self._listeners: Dict[Listener, None] = {}
        self._tasks: Set[asyncio.Task] = set()

    def add(self, listener: Listener) -> bool:
        """
        Register listener.

        Returns:
            True if newly added, False if already registered
        """
        if listener in self._listeners:
            return False
        self._listeners[listener] = None
        return True

    def remove(self, listener: Listener) -> bool:
        """
        Unregister listener.

        Returns:
            True if it was registered, False otherwise
        """
        if listener not in self._listeners:
            return False
        del self._listeners[listener]
        return True

    def clear(self) -> None:
        self._listeners.clear()

    def __contains__(self, listener: Listener) -> bool:
        return listener in self._listeners

    def __len__(self) -> int:
        return len(self._listeners)

    def listeners(self) -> List[Listener]:
        return list(self._listeners)

    def dispatch(self, event: Any) -> int:
        """
        Deliver event to every listener in registration order.

        A failing listener is logged and skipped. Listeners added or
        removed during delivery take effect from the next event.

        Returns:
            Number of listeners invoked
        """
        delivered = 0
        for listener in list(self._listeners):
            delivered += 1
            try:
                result = listener(event)
            except Exception:
                logger.exception("Listener %r failed", listener)
                continue

            if inspect.isawaitable(result):
                self._spawn(result, listener)

        return delivered

    def _spawn(self, awaitable: Awaitable[None], listener: Listener) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.error(
                    "Async listener %r failed", listener, exc_info=t.exception()
                )

        task.add_done_callback(_done)

    async def drain(self) -> None:
        """Wait for pending async listener tasks."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)
