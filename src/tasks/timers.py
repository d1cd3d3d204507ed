"""
Auto-off timer registry.

Keeps at most one pending deadline per target name. When a deadline expires
its cleanup coroutine runs while the registry lock is held, so a concurrent
cancel or replace either happens before the cleanup starts or waits for it
to finish.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, Optional


logger = logging.getLogger(__name__)

Cleanup = Callable[[], Awaitable[None]]


@dataclass
class TimerEntry:
    """A pending auto-off deadline."""
    name: str
    duration: float
    expires_at: datetime
    deadline: float
    loop: asyncio.AbstractEventLoop = field(repr=False)
    handle: Optional[asyncio.Task] = field(default=None, repr=False)

    def remaining(self) -> float:
        """Seconds until expiry on the loop clock, never negative."""
        return max(0.0, self.deadline - self.loop.time())


class TimerRegistry:
    """Target name -> single pending auto-off timer."""

    def __init__(self):
        self._timers: Dict[str, TimerEntry] = {}
        self._lock = asyncio.Lock()

    async def setup_timer(self, name: str, duration: float, cleanup: Cleanup) -> TimerEntry:
        """
        Arm a timer for `name`, replacing any existing one.

        Args:
            name: Target name
            duration: Seconds until cleanup runs
            cleanup: Async callable run on expiry

        Returns:
            The new timer entry
        """
        async with self._lock:
            self._cancel_locked(name)

            loop = asyncio.get_running_loop()
            entry = TimerEntry(
                name=name,
                duration=duration,
                expires_at=datetime.now() + timedelta(seconds=duration),
                deadline=loop.time() + duration,
                loop=loop,
            )
            entry.handle = asyncio.create_task(
                self._expire(entry, cleanup),
                name=f"auto-off:{name}"
            )
            self._timers[name] = entry
            logger.info(f"Auto-off timer for {name} set to {duration}s")
            return entry

    async def cancel_timer(self, name: str) -> bool:
        """
        Cancel the pending timer for `name`.

        Returns:
            True if a timer was pending and has been cancelled
        """
        async with self._lock:
            return self._cancel_locked(name)

    async def cancel_all_timers(self) -> int:
        """Cancel every pending timer and return how many there were."""
        async with self._lock:
            names = list(self._timers)
            for name in names:
                self._cancel_locked(name)
            return len(names)

    def get_timer(self, name: str) -> Optional[TimerEntry]:
        return self._timers.get(name)

    def get_remaining(self, name: str) -> Optional[float]:
        entry = self._timers.get(name)
        return entry.remaining() if entry else None

    def list_timers(self) -> Dict[str, TimerEntry]:
        return dict(self._timers)

    def _cancel_locked(self, name: str) -> bool:
        entry = self._timers.pop(name, None)
        if entry is None:
            return False
        if entry.handle is not None and not entry.handle.done():
            entry.handle.cancel()
        logger.debug(f"Cancelled auto-off timer for {name}")
        return True

    async def _expire(self, entry: TimerEntry, cleanup: Cleanup):
        await asyncio.sleep(entry.remaining())

        async with self._lock:
            # A replaced timer may already be past its sleep when cancelled
            if self._timers.get(entry.name) is not entry:
                return
            del self._timers[entry.name]

            logger.info(f"Auto-off timer for {entry.name} expired")
            try:
                await cleanup()
            except Exception as e:
                logger.error(f"Auto-off cleanup for {entry.name} failed: {e}")
