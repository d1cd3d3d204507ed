"""Flipflop: turn on the switches of a group one at a time, round-robin."""

import logging
from typing import List, Optional, Sequence

from src.switches.base import Switch
from src.switches.errors import ErrorCollector
from src.tasks.base import PeriodicTask, TaskType
from src.tasks.errors import NoSwitchesError


logger = logging.getLogger(__name__)


class Flipflop(PeriodicTask):
    """
    Rotate through a list of switches with exactly one on at a time.

    Each ON phase advances to the next switch and turns it on; each OFF
    phase turns the active switch off again. If that turn-off fails, the
    next ON phase retries it and stays dark unless it succeeds. With a
    duty cycle of 0 no switch is ever turned on.
    """

    task_type = TaskType.FLIPFLOP

    def __init__(self, switches: Optional[Sequence[Switch]], period: float,
                 duty_cycle: Optional[float] = None):
        if not switches:
            raise NoSwitchesError()
        super().__init__(period, duty_cycle)
        self._switches: List[Switch] = list(switches)
        self._current = -1
        # Index whose last turn-off failed, so it may still be on
        self._lingering: Optional[int] = None

    def __str__(self) -> str:
        return f"flipflop({', '.join(str(sw) for sw in self._switches)})"

    def get_switches(self) -> List[Switch]:
        return list(self._switches)

    def get_current_switch(self) -> int:
        """Index of the active switch, or -1 when none has been activated."""
        return self._current

    def _reset(self):
        self._current = -1
        self._lingering = None

    async def _enter_on(self):
        if self.on_duration <= 0:
            return
        if self._lingering is not None:
            # Raising here skips the whole ON phase, so no second switch comes on
            await self._switches[self._lingering].turn_off()
            self._lingering = None
        self._current = (self._current + 1) % len(self._switches)
        await self._switches[self._current].turn_on()

    async def _enter_off(self):
        if 0 <= self._current < len(self._switches):
            self._lingering = self._current
            await self._switches[self._current].turn_off()
            self._lingering = None

    async def _force_off(self):
        """Turn off every member, wherever the rotation stopped."""
        collector = ErrorCollector()
        for sw in self._switches:
            try:
                await sw.turn_off()
            except Exception as e:
                logger.error(f"Flipflop failed to turn off switch {sw} during stop: {e}")
                collector.add(f"switch {sw}", e)
        collector.raise_if_errors("errors stopping flipflop")
