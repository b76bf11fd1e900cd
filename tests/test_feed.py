"""
NotificationFeed: history, persistence and display side effects.
"""

import logging

import pytest

from bizpulse.notifications import (
    ConsoleNotifier,
    FeedEntry,
    InMemoryNotifier,
    NotificationFeed,
    NotificationPermission,
    NotificationStore,
    display_for_event,
)
from bizpulse.sockets import Priority
from bizpulse.testing import wait_until

from conftest import BACKEND_URL, RecordingBackend


@pytest.fixture
def notifier():
    return InMemoryNotifier()


@pytest.fixture
def store(backend, tokens):
    return NotificationStore(BACKEND_URL, tokens, company_id="ACME", transport=backend.transport)


async def _deliver(transport, *frames):
    for frame in frames:
        transport.socket.push(frame)
    await transport.socket.drain()


# ============================================================================
# End to end
# ============================================================================


class TestOrderShipped:

    @pytest.mark.asyncio
    async def test_event_reaches_history_store_and_display(
        self, manager, transport, store, backend, notifier, make_frame,
    ):
        async with NotificationFeed(manager, store=store, notifier=notifier) as feed:
            await _deliver(transport, make_frame())
            await feed.flush()

            entry = feed.notifications[0]
            assert entry.title == "Order Shipped"
            assert entry.priority is Priority.HIGH
            assert entry.read is False

            assert len(backend.requests) == 1
            body = backend.json_bodies()[0]
            assert body["title"] == "Order Shipped"
            assert body["targetIds"] == ["ACME"]
            assert backend.requests[0].headers["Authorization"] == "Bearer tok-123"

            assert len(notifier.shown) == 1
            shown = notifier.shown[0]
            assert shown.title == "Order Shipped"
            assert shown.body == "Order #123 shipped"
            assert shown.tag == "order_update"
            assert shown.require_interaction is True

        await store.shutdown()
        await manager.disconnect()


# ============================================================================
# History
# ============================================================================


class TestHistory:

    @pytest.mark.asyncio
    async def test_newest_first_and_bounded(self, manager, transport, make_frame):
        async with NotificationFeed(manager) as feed:
            await _deliver(transport, *[make_frame(title=f"N{i}") for i in range(55)])

            titles = [entry.title for entry in feed.notifications]
            assert len(titles) == 50
            assert titles[0] == "N54"
            assert titles[-1] == "N5"
        await manager.disconnect()

    @pytest.mark.asyncio
    async def test_custom_limit(self, manager, transport, make_frame):
        async with NotificationFeed(manager, history_limit=2) as feed:
            await _deliver(transport, *[make_frame(title=f"N{i}") for i in range(3)])
            assert [e.title for e in feed.notifications] == ["N2", "N1"]
        await manager.disconnect()

    @pytest.mark.asyncio
    async def test_mark_as_read(self, manager, transport, make_frame):
        async with NotificationFeed(manager) as feed:
            await _deliver(transport, make_frame(title="a"), make_frame(title="b"))
            assert feed.unread_count == 2

            feed.mark_as_read(0)
            assert feed.notifications[0].read is True
            assert feed.notifications[1].read is False
            assert feed.unread_count == 1

            feed.mark_as_read(5)
            feed.mark_as_read(-1)
            assert feed.unread_count == 1
        await manager.disconnect()

    @pytest.mark.asyncio
    async def test_clear(self, manager, transport, make_frame):
        async with NotificationFeed(manager) as feed:
            await _deliver(transport, make_frame())
            feed.clear()
            assert feed.notifications == []
            assert feed.unread_count == 0
        await manager.disconnect()

    def test_entry_to_dict(self, make_event):
        entry = FeedEntry(make_event())
        data = entry.to_dict()
        assert data["title"] == "Order Shipped"
        assert data["read"] is False

    def test_invalid_arguments(self, manager):
        with pytest.raises(ValueError):
            NotificationFeed(manager, history_limit=0)
        with pytest.raises(ValueError):
            NotificationFeed(manager, poll_interval=0)


# ============================================================================
# Mounting
# ============================================================================


class TestMounting:

    @pytest.mark.asyncio
    async def test_two_feeds_share_connection(self, manager, transport, make_frame):
        first = NotificationFeed(manager)
        second = NotificationFeed(manager)
        await first.mount()
        await second.mount()

        assert transport.attempts == 1
        await _deliver(transport, make_frame())
        assert len(first.notifications) == 1
        assert len(second.notifications) == 1

        await first.unmount()
        await second.unmount()
        await manager.disconnect()

    @pytest.mark.asyncio
    async def test_unmount_stops_delivery_only(self, manager, transport, make_frame):
        feed = NotificationFeed(manager)
        await feed.mount()
        assert feed.mounted
        assert feed.is_connected

        await feed.unmount()
        await _deliver(transport, make_frame())

        assert feed.notifications == []
        assert manager.is_connected
        assert not feed.mounted
        await manager.disconnect()

    @pytest.mark.asyncio
    async def test_mount_is_idempotent(self, manager):
        feed = NotificationFeed(manager)
        await feed.mount()
        await feed.mount()
        assert len(manager.registry) == 1
        await feed.unmount()
        await manager.disconnect()

    @pytest.mark.asyncio
    async def test_status_polling(self, manager):
        feed = NotificationFeed(manager, poll_interval=0.005)
        await feed.mount()
        assert feed.is_connected

        await manager.disconnect()
        await wait_until(lambda: not feed.is_connected)
        assert feed.connection_status.is_connected is False
        await feed.unmount()


# ============================================================================
# Side effects
# ============================================================================


class TestSideEffects:

    @pytest.mark.asyncio
    async def test_store_failure_does_not_block_feed(
        self, manager, transport, tokens, notifier, make_frame, caplog,
    ):
        backend = RecordingBackend(status=500, body={"message": "db down"})
        store = NotificationStore(BACKEND_URL, tokens, transport=backend.transport)

        with caplog.at_level(logging.WARNING, logger="bizpulse.notifications.feed"):
            async with NotificationFeed(manager, store=store, notifier=notifier) as feed:
                await _deliver(transport, make_frame())
                await feed.flush()
                assert feed.notifications[0].title == "Order Shipped"
                assert len(notifier.shown) == 1

        assert store.total_errors == 1
        assert "db down" in caplog.text
        await store.shutdown()
        await manager.disconnect()

    @pytest.mark.asyncio
    async def test_no_display_without_permission(self, manager, transport, make_frame):
        notifier = InMemoryNotifier(NotificationPermission.DENIED)
        async with NotificationFeed(manager, notifier=notifier) as feed:
            await _deliver(transport, make_frame())
            await feed.flush()
            assert len(feed.notifications) == 1
        assert notifier.shown == []
        await manager.disconnect()

    @pytest.mark.asyncio
    async def test_no_display_when_unsupported(self, manager, transport, make_frame):
        notifier = InMemoryNotifier(supported=False)
        async with NotificationFeed(manager, notifier=notifier) as feed:
            await _deliver(transport, make_frame())
            await feed.flush()
        assert notifier.shown == []
        await manager.disconnect()

    @pytest.mark.asyncio
    async def test_display_failure_logged(self, manager, transport, make_frame, caplog):
        notifier = InMemoryNotifier()
        notifier.fail_with = RuntimeError("no display")
        with caplog.at_level(logging.WARNING, logger="bizpulse.notifications.feed"):
            async with NotificationFeed(manager, notifier=notifier) as feed:
                await _deliver(transport, make_frame())
                await feed.flush()
                assert len(feed.notifications) == 1
        assert "no display" in caplog.text
        await manager.disconnect()


class TestDisplayForEvent:

    def test_low_priority_is_silent(self, make_event):
        display = display_for_event(make_event(priority="low"))
        assert display.silent is True
        assert display.require_interaction is False

    def test_urgent_requires_interaction(self, make_event):
        assert display_for_event(make_event(priority="urgent")).require_interaction is True

    def test_icon_and_data(self, make_event):
        display = display_for_event(make_event(), icon="/logo.svg")
        assert display.icon == "/logo.svg"
        assert display.data == {"orderNumber": "123"}
        assert display.to_dict()["icon"] == "/logo.svg"


class TestConsoleNotifier:

    def test_always_granted(self):
        notifier = ConsoleNotifier()
        assert notifier.supported
        assert notifier.permission is NotificationPermission.GRANTED

    @pytest.mark.asyncio
    async def test_high_priority_is_pinned(self, make_event, capsys):
        notifier = ConsoleNotifier(width=20)
        await notifier.show(display_for_event(make_event()))

        out = capsys.readouterr().out
        assert "=" * 20 in out
        assert "Order Shipped" in out
        assert "requires interaction" in out
        assert notifier.shown == 1

    @pytest.mark.asyncio
    async def test_medium_priority_dismissible(self, make_event, capsys):
        await ConsoleNotifier(width=20).show(display_for_event(make_event(priority="medium")))
        out = capsys.readouterr().out
        assert "-" * 20 in out
        assert "requires interaction" not in out

    @pytest.mark.asyncio
    async def test_bell_skipped_when_silent(self, make_event, capsys):
        notifier = ConsoleNotifier(bell=True)
        await notifier.show(display_for_event(make_event(priority="low")))
        await notifier.show(display_for_event(make_event(priority="high")))
        out = capsys.readouterr().out
        assert out.count("\a") == 1

    @pytest.mark.asyncio
    async def test_feed_shows_through_console(self, manager, transport, make_frame, capsys):
        async with NotificationFeed(manager, notifier=ConsoleNotifier()) as feed:
            await _deliver(transport, make_frame(title="Invoice Paid", priority="urgent"))
            await feed.flush()
        assert "Invoice Paid" in capsys.readouterr().out
        await manager.disconnect()
