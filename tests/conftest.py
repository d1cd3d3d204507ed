"""Pytest fixtures and helpers for testing PulseRelay."""

import time
from typing import List, Tuple

import pytest

from src.switches.base import Switch
from src.switches.dummy import DummySwitchCollection
from src.switches.errors import SwitchError
from src.switches.group import ResolvedSwitch, SwitchGroup


# ============================================================================
# Test Switches
# ============================================================================

class RecordingSwitch(Switch):
    """Switch that records every call with a timestamp and can be made to fail."""

    def __init__(self, name: str = 'sw'):
        self.name = name
        self.state = False
        self.calls: List[Tuple[float, str]] = []
        self.fail_on = False
        self.fail_off = False

    async def turn_on(self):
        self.calls.append((time.monotonic(), 'on'))
        if self.fail_on:
            raise SwitchError(f"{self.name} failed to turn on")
        self.state = True

    async def turn_off(self):
        self.calls.append((time.monotonic(), 'off'))
        if self.fail_off:
            raise SwitchError(f"{self.name} failed to turn off")
        self.state = False

    async def get_state(self) -> bool:
        return self.state

    def actions(self) -> List[str]:
        return [action for _, action in self.calls]

    def __str__(self) -> str:
        return self.name


class EventRecorder:
    """Collects (target, event) pairs from a publish hook."""

    def __init__(self):
        self.events: List[Tuple[str, str]] = []

    def __call__(self, name: str, event: str):
        self.events.append((name, event))

    def publish(self, name: str, event: str):
        self.events.append((name, event))

    def close(self):
        pass

    def for_target(self, name: str) -> List[str]:
        return [event for target, event in self.events if target == name]


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def recording_switch():
    """A single recording switch."""
    return RecordingSwitch('s1')


@pytest.fixture
def recording_switches():
    """Three recording switches."""
    return [RecordingSwitch(f"s{i}") for i in range(3)]


@pytest.fixture
def events():
    """Event hook that records published events."""
    return EventRecorder()


@pytest.fixture
def dummy_collection():
    """A dummy collection with four switches."""
    return DummySwitchCollection(4)


@pytest.fixture
def switch_tables(dummy_collection):
    """
    Collections, named switches and groups backed by the dummy collection.

    Switches s0..s3 map to dummy.0..dummy.3; group "pair" holds s0 and s1.
    """
    collections = {'dummy': dummy_collection}
    switches = {
        f"s{i}": ResolvedSwitch(
            name=f"s{i}",
            collection=dummy_collection,
            index=i,
            switch=dummy_collection.get_switch(i)
        )
        for i in range(4)
    }
    groups = {
        'pair': SwitchGroup('pair', {name: switches[name] for name in ('s0', 's1')}),
    }
    return collections, switches, groups
