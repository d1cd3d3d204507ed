"""Switch drivers, groups and the driver registry."""

from .errors import SwitchError, AggregateError, ErrorCollector
from .base import Switch, SwitchCollection
from .group import ResolvedSwitch, SwitchGroup
from .dummy import DummySwitch, DummySwitchCollection
from .tasmota import TasmotaSwitch, TasmotaSwitchCollection
from .kasa_switch import KasaSwitch, KasaSwitchCollection
from .registry import (
    DriverRegistry,
    build_default_registry,
    build_switch_tables,
    resolve_switch,
)

__all__ = [
    'SwitchError',
    'AggregateError',
    'ErrorCollector',
    'Switch',
    'SwitchCollection',
    'ResolvedSwitch',
    'SwitchGroup',
    'DummySwitch',
    'DummySwitchCollection',
    'TasmotaSwitch',
    'TasmotaSwitchCollection',
    'KasaSwitch',
    'KasaSwitchCollection',
    'DriverRegistry',
    'build_default_registry',
    'build_switch_tables',
    'resolve_switch',
]
