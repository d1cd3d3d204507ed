"""Unit tests for the auto-off TimerRegistry."""

import asyncio
import logging
from datetime import datetime, timedelta
from unittest.mock import patch

from src.tasks.timers import TimerRegistry


class Counter:
    """Async cleanup callable that counts invocations."""

    def __init__(self, fail: bool = False):
        self.calls = 0
        self.fail = fail

    async def __call__(self):
        self.calls += 1
        if self.fail:
            raise RuntimeError("cleanup exploded")


class SlowCleanup:
    """Cleanup that takes a while, recording when it starts and finishes."""

    def __init__(self, delay: float):
        self.delay = delay
        self.started = False
        self.finished = False

    async def __call__(self):
        self.started = True
        await asyncio.sleep(self.delay)
        self.finished = True


class TestTimerRegistry:
    """Tests for TimerRegistry."""

    def test_expiry_runs_cleanup_once(self):
        async def scenario():
            registry = TimerRegistry()
            cleanup = Counter()
            await registry.setup_timer('s1', 0.05, cleanup)
            assert registry.get_timer('s1') is not None

            await asyncio.sleep(0.2)

            assert cleanup.calls == 1
            assert registry.get_timer('s1') is None
            assert registry.get_remaining('s1') is None

        asyncio.run(scenario())

    def test_cancel_before_expiry(self):
        async def scenario():
            registry = TimerRegistry()
            cleanup = Counter()
            await registry.setup_timer('s1', 0.1, cleanup)

            assert await registry.cancel_timer('s1') is True
            await asyncio.sleep(0.2)

            assert cleanup.calls == 0
            assert registry.get_timer('s1') is None
            assert await registry.cancel_timer('s1') is False

        asyncio.run(scenario())

    def test_replace_cancels_previous(self):
        async def scenario():
            registry = TimerRegistry()
            first, second = Counter(), Counter()
            await registry.setup_timer('s1', 0.05, first)
            entry = await registry.setup_timer('s1', 0.1, second)

            assert registry.get_timer('s1') is entry
            await asyncio.sleep(0.25)

            assert first.calls == 0
            assert second.calls == 1

        asyncio.run(scenario())

    def test_remaining(self):
        async def scenario():
            registry = TimerRegistry()
            entry = await registry.setup_timer('s1', 10, Counter())

            remaining = registry.get_remaining('s1')
            assert 9.0 < remaining <= 10.0
            assert entry.duration == 10
            assert entry.remaining() <= remaining

            await registry.cancel_all_timers()

        asyncio.run(scenario())

    def test_cancel_all(self):
        async def scenario():
            registry = TimerRegistry()
            cleanups = [Counter() for _ in range(3)]
            for i, cleanup in enumerate(cleanups):
                await registry.setup_timer(f"s{i}", 0.05, cleanup)

            assert await registry.cancel_all_timers() == 3
            await asyncio.sleep(0.15)

            assert registry.list_timers() == {}
            assert all(c.calls == 0 for c in cleanups)

        asyncio.run(scenario())

    def test_cleanup_failure_is_logged(self, caplog):
        async def scenario():
            registry = TimerRegistry()
            await registry.setup_timer('s1', 0.05, Counter(fail=True))
            await asyncio.sleep(0.2)
            assert registry.get_timer('s1') is None

        with caplog.at_level(logging.ERROR):
            asyncio.run(scenario())

        assert "Auto-off cleanup for s1 failed: cleanup exploded" in caplog.text

    def test_independent_names(self):
        async def scenario():
            registry = TimerRegistry()
            a, b = Counter(), Counter()
            await registry.setup_timer('a', 0.05, a)
            await registry.setup_timer('b', 0.05, b)
            await registry.cancel_timer('a')
            await asyncio.sleep(0.2)

            assert a.calls == 0
            assert b.calls == 1

        asyncio.run(scenario())

    def test_remaining_ignores_wall_clock_steps(self):
        async def scenario():
            registry = TimerRegistry()
            await registry.setup_timer('s1', 10, Counter())

            with patch('src.tasks.timers.datetime') as fake_datetime:
                fake_datetime.now.return_value = datetime.now() + timedelta(hours=1)
                assert 9.0 < registry.get_remaining('s1') <= 10.0

            await registry.cancel_all_timers()

        asyncio.run(scenario())


class TestTimerRegistryConcurrency:
    """Tests for cancel and expiry interleaving."""

    def test_cancel_at_expiry_runs_cleanup_at_most_once(self):
        async def scenario():
            registry = TimerRegistry()
            outcomes = []
            for _ in range(50):
                cleanup = Counter()
                await registry.setup_timer('s1', 0.01, cleanup)
                await asyncio.sleep(0.01)
                cancelled = await registry.cancel_timer('s1')
                outcomes.append((cancelled, cleanup))

            await asyncio.sleep(0.05)

            # A successful cancel means cleanup never runs; otherwise it ran exactly once
            for cancelled, cleanup in outcomes:
                assert cleanup.calls == (0 if cancelled else 1)
            assert registry.list_timers() == {}

        asyncio.run(scenario())

    def test_cancel_waits_for_running_cleanup(self):
        async def scenario():
            registry = TimerRegistry()
            cleanup = SlowCleanup(0.1)
            await registry.setup_timer('s1', 0.02, cleanup)
            await asyncio.sleep(0.05)
            assert cleanup.started is True
            assert cleanup.finished is False

            assert await registry.cancel_timer('s1') is False
            assert cleanup.finished is True

        asyncio.run(scenario())

    def test_gathered_setups_leave_one_timer(self):
        async def scenario():
            registry = TimerRegistry()
            cleanups = [Counter() for _ in range(4)]
            await asyncio.gather(*(registry.setup_timer('s1', 0.05, c) for c in cleanups))

            assert len(registry.list_timers()) == 1
            await asyncio.sleep(0.2)
            assert sum(c.calls for c in cleanups) == 1

        asyncio.run(scenario())
