"""
Listener registry fan-out.
"""

import asyncio
import logging

import pytest

from bizpulse.sockets import ListenerRegistry


class TestRegistration:

    def test_add_is_idempotent(self):
        registry = ListenerRegistry()
        listener = lambda event: None
        assert registry.add(listener) is True
        assert registry.add(listener) is False
        assert len(registry) == 1

    def test_remove(self):
        registry = ListenerRegistry()
        listener = lambda event: None
        registry.add(listener)
        assert registry.remove(listener) is True
        assert listener not in registry

    def test_remove_unknown(self):
        assert ListenerRegistry().remove(lambda event: None) is False

    def test_clear(self):
        registry = ListenerRegistry()
        registry.add(lambda event: None)
        registry.add(lambda event: None)
        registry.clear()
        assert len(registry) == 0


class TestDispatch:

    def test_registration_order(self):
        registry = ListenerRegistry()
        calls = []
        registry.add(lambda event: calls.append(("a", event)))
        registry.add(lambda event: calls.append(("b", event)))
        assert registry.dispatch("e1") == 2
        assert calls == [("a", "e1"), ("b", "e1")]

    def test_removed_listener_not_called(self):
        registry = ListenerRegistry()
        calls = []
        listener = calls.append
        registry.add(listener)
        registry.remove(listener)
        registry.dispatch("e1")
        assert calls == []

    def test_failing_listener_isolated(self, caplog):
        registry = ListenerRegistry()
        calls = []

        def broken(event):
            raise RuntimeError("boom")

        registry.add(broken)
        registry.add(calls.append)
        with caplog.at_level(logging.ERROR, logger="bizpulse.sockets.registry"):
            registry.dispatch("e1")
        assert calls == ["e1"]
        assert "failed" in caplog.text

    def test_added_during_dispatch_waits_for_next_event(self):
        registry = ListenerRegistry()
        late_calls = []

        def late(event):
            late_calls.append(event)

        def adder(event):
            registry.add(late)

        registry.add(adder)
        registry.dispatch("e1")
        assert late_calls == []
        registry.dispatch("e2")
        assert late_calls == ["e2"]

    @pytest.mark.asyncio
    async def test_async_listener_runs_as_task(self):
        registry = ListenerRegistry()
        seen = []

        async def slow(event):
            await asyncio.sleep(0)
            seen.append(("slow", event))

        registry.add(slow)
        registry.add(lambda event: seen.append(("sync", event)))
        registry.dispatch("e1")
        assert seen == [("sync", "e1")]

        await registry.drain()
        assert seen == [("sync", "e1"), ("slow", "e1")]

    @pytest.mark.asyncio
    async def test_async_listener_failure_logged(self, caplog):
        registry = ListenerRegistry()

        async def broken(event):
            raise RuntimeError("async boom")

        registry.add(broken)
        with caplog.at_level(logging.ERROR, logger="bizpulse.sockets.registry"):
            registry.dispatch("e1")
            await registry.drain()
            await asyncio.sleep(0)
        assert "Async listener" in caplog.text
