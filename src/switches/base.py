"""Abstract switch and switch collection interfaces."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import List

from src.switches.errors import ErrorCollector, SwitchError


logger = logging.getLogger(__name__)


class Switch(ABC):
    """
    A single addressable on/off actuator.

    Implementations must tolerate concurrent calls from a task loop and a
    status query, and turn_on/turn_off must be idempotent.
    """

    @abstractmethod
    async def turn_on(self):
        """Turn the switch on."""
        pass

    @abstractmethod
    async def turn_off(self):
        """Turn the switch off."""
        pass

    @abstractmethod
    async def get_state(self) -> bool:
        """Return True if the switch is on."""
        pass

    def is_disabled(self) -> bool:
        """Return True if the switch is currently unusable (e.g. unreachable)."""
        return False


class SwitchCollection(Switch):
    """
    An ordered collection of switches that is itself a switch.

    Aggregate operations act on every member concurrently and collect all
    failures instead of stopping at the first one.
    """

    @abstractmethod
    def list_switches(self) -> List[Switch]:
        """Return the member switches in a stable order."""
        pass

    def count_switches(self) -> int:
        return len(self.list_switches())

    def get_switch(self, index: int) -> Switch:
        """
        Get a member switch by position.

        Raises:
            SwitchError: If the index is out of range
        """
        switches = self.list_switches()
        if index < 0 or index >= len(switches):
            raise SwitchError(
                f"switch index {index} out of range for {self} (count: {len(switches)})"
            )
        return switches[index]

    def _member_label(self, index: int, switch: Switch) -> str:
        return f"switch {switch}"

    async def _gather_members(self, operation: str):
        switches = self.list_switches()
        return switches, await asyncio.gather(
            *[getattr(sw, operation)() for sw in switches],
            return_exceptions=True
        )

    async def turn_on(self):
        """Turn on every member switch."""
        switches, results = await self._gather_members('turn_on')
        collector = ErrorCollector()
        for i, (sw, result) in enumerate(zip(switches, results)):
            if isinstance(result, Exception):
                logger.error(f"Failed to turn on {sw}: {result}")
                collector.add(self._member_label(i, sw), result)
        collector.raise_if_errors(f"errors turning on {self}")

    async def turn_off(self):
        """Turn off every member switch."""
        switches, results = await self._gather_members('turn_off')
        collector = ErrorCollector()
        for i, (sw, result) in enumerate(zip(switches, results)):
            if isinstance(result, Exception):
                logger.error(f"Failed to turn off {sw}: {result}")
                collector.add(self._member_label(i, sw), result)
        collector.raise_if_errors(f"errors turning off {self}")

    async def get_detailed_state(self) -> List[bool]:
        """
        Get the state of every member.

        Returns:
            Member states in list_switches() order
        """
        switches, results = await self._gather_members('get_state')
        collector = ErrorCollector()
        for i, (sw, result) in enumerate(zip(switches, results)):
            if isinstance(result, Exception):
                collector.add(self._member_label(i, sw), result)
        collector.raise_if_errors(f"errors getting state of {self}")
        return [bool(state) for state in results]

    async def get_state(self) -> bool:
        """Return True only if every member is on."""
        states = await self.get_detailed_state()
        return len(states) > 0 and all(states)

    def is_disabled(self) -> bool:
        return any(sw.is_disabled() for sw in self.list_switches())

    async def init(self):
        """Prepare the collection for use."""
        pass

    async def close(self):
        """Release any resources held by the collection."""
        pass
