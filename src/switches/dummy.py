"""In-memory switch driver for testing and demos."""

import logging
from typing import List

from src.switches.base import Switch, SwitchCollection


logger = logging.getLogger(__name__)


class DummySwitch(Switch):
    """A virtual switch that only remembers its state."""

    def __init__(self, index: int):
        self.index = index
        self.state = False

    async def turn_on(self):
        logger.debug(f"Turning on dummy switch {self.index}")
        self.state = True

    async def turn_off(self):
        logger.debug(f"Turning off dummy switch {self.index}")
        self.state = False

    async def get_state(self) -> bool:
        return self.state

    def __str__(self) -> str:
        return f"dummy:{self.index}"


class DummySwitchCollection(SwitchCollection):
    """A collection of virtual switches."""

    def __init__(self, switch_count: int):
        self.switches: List[DummySwitch] = [DummySwitch(i) for i in range(switch_count)]

    def list_switches(self) -> List[Switch]:
        return list(self.switches)

    async def init(self):
        logger.info(f"Initializing dummy switch collection with {len(self.switches)} switches")

    async def close(self):
        logger.info("Closing dummy switch collection")

    def __str__(self) -> str:
        return f"dummy switch collection with {len(self.switches)} switches"
