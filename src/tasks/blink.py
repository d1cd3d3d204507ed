"""Blink: periodically toggle a single switch."""

from typing import Optional

from src.switches.base import Switch
from src.tasks.base import PeriodicTask, TaskType
from src.tasks.errors import SwitchRequiredError


class Blink(PeriodicTask):
    """
    Toggle one switch on and off with a given period and duty cycle.

    A duty cycle of 0 keeps the switch off and 1 keeps it on; the phase
    with zero length is skipped instead of producing a zero-width pulse.
    """

    task_type = TaskType.BLINK

    def __init__(self, switch: Optional[Switch], period: float, duty_cycle: Optional[float] = None):
        """
        Args:
            switch: Switch (or group) to toggle
            period: Cycle length in seconds
            duty_cycle: Fraction of the period spent on (default 0.5)

        Raises:
            SwitchRequiredError: If no switch is given
            InvalidPeriodError: If period <= 0
            InvalidDutyCycleError: If duty_cycle is outside [0, 1]
        """
        if switch is None:
            raise SwitchRequiredError()
        super().__init__(period, duty_cycle)
        self._switch = switch

    def __str__(self) -> str:
        return f"blink({self._switch})"

    def get_switch(self) -> Switch:
        return self._switch

    async def _enter_on(self):
        if self.on_duration > 0:
            await self._switch.turn_on()

    async def _enter_off(self):
        if self.off_duration > 0:
            await self._switch.turn_off()

    async def _force_off(self):
        await self._switch.turn_off()
