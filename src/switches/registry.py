"""Switch driver factories and construction of the switch tables."""

import logging
from typing import Any, Dict, List, Tuple

from src.config.config_loader import ConfigError
from src.switches.base import SwitchCollection
from src.switches.dummy import DummySwitchCollection
from src.switches.errors import SwitchError
from src.switches.group import ResolvedSwitch, SwitchGroup
from src.switches.kasa_switch import KasaDevice, KasaSwitchCollection
from src.switches.tasmota import TasmotaSwitchCollection


logger = logging.getLogger(__name__)


class DriverFactory:
    """Base class for switch driver factories."""

    def create_driver(self, config: Dict[str, Any]) -> SwitchCollection:
        raise NotImplementedError

    def validate_config(self, config: Dict[str, Any]):
        """Raise ConfigError if the driver configuration is invalid."""
        pass


class DummyFactory(DriverFactory):
    """Factory for in-memory switches."""

    DEFAULT_SWITCH_COUNT = 4

    def validate_config(self, config: Dict[str, Any]):
        count = config.get('switch_count', self.DEFAULT_SWITCH_COUNT)
        if not isinstance(count, int) or isinstance(count, bool) or count < 0:
            raise ConfigError(f"switch_count must be a non-negative integer, got: {count!r}")

    def create_driver(self, config: Dict[str, Any]) -> SwitchCollection:
        self.validate_config(config)
        count = config.get('switch_count') or self.DEFAULT_SWITCH_COUNT
        return DummySwitchCollection(count)


class TasmotaFactory(DriverFactory):
    """Factory for Tasmota HTTP relays."""

    DEFAULT_TIMEOUT = 5

    def validate_config(self, config: Dict[str, Any]):
        addresses = config.get('addresses')
        if not isinstance(addresses, list) or not addresses:
            raise ConfigError("tasmota driver requires at least one address")
        for i, addr in enumerate(addresses):
            if not isinstance(addr, str) or not addr:
                raise ConfigError(f"tasmota address {i} must be a non-empty string")
        timeout = config.get('timeout', self.DEFAULT_TIMEOUT)
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigError(f"tasmota timeout must be a positive number, got: {timeout!r}")

    def create_driver(self, config: Dict[str, Any]) -> SwitchCollection:
        self.validate_config(config)
        return TasmotaSwitchCollection(
            config['addresses'],
            timeout=config.get('timeout') or self.DEFAULT_TIMEOUT
        )


class KasaFactory(DriverFactory):
    """Factory for Kasa/Tapo smart plugs."""

    def validate_config(self, config: Dict[str, Any]):
        if not config.get('username') or not config.get('password'):
            raise ConfigError("kasa driver requires username and password")
        devices = config.get('devices')
        if not isinstance(devices, list) or not devices:
            raise ConfigError("kasa driver requires at least one device")
        for i, entry in enumerate(devices):
            if not isinstance(entry, dict) or not entry.get('ip_address'):
                raise ConfigError(f"kasa device {i} must have a non-empty 'ip_address'")
            outlet = entry.get('outlet')
            if outlet is not None and (not isinstance(outlet, int) or outlet < 0):
                raise ConfigError(f"kasa device {i} outlet must be a non-negative integer")

    def create_driver(self, config: Dict[str, Any]) -> SwitchCollection:
        self.validate_config(config)
        return KasaSwitchCollection(
            config['devices'],
            username=config['username'],
            password=config['password'],
            discovery_timeout=config.get('discovery_timeout_seconds', KasaDevice.DEFAULT_DISCOVERY_TIMEOUT)
        )


class DriverRegistry:
    """Explicit table of driver factories keyed by driver name."""

    def __init__(self):
        self._drivers: Dict[str, DriverFactory] = {}

    def register(self, name: str, factory: DriverFactory):
        if name in self._drivers:
            raise ValueError(f"driver {name} already registered")
        self._drivers[name] = factory

    def _factory(self, driver_name: str) -> DriverFactory:
        factory = self._drivers.get(driver_name)
        if factory is None:
            raise ConfigError(
                f"Unknown driver: {driver_name}. Supported drivers: {', '.join(self.list_drivers())}"
            )
        return factory

    def create(self, driver_name: str, config: Dict[str, Any]) -> SwitchCollection:
        return self._factory(driver_name).create_driver(config or {})

    def validate_config(self, driver_name: str, config: Dict[str, Any]):
        self._factory(driver_name).validate_config(config or {})

    def list_drivers(self) -> List[str]:
        return sorted(self._drivers)


def build_default_registry() -> DriverRegistry:
    """Create a registry holding every built-in driver."""
    registry = DriverRegistry()
    registry.register('dummy', DummyFactory())
    registry.register('tasmota', TasmotaFactory())
    registry.register('kasa', KasaFactory())
    return registry


def resolve_switch(switch_name: str, spec: str,
                   collections: Dict[str, SwitchCollection]) -> ResolvedSwitch:
    """
    Resolve a "<collection>.<index>" spec to a switch.

    Raises:
        ConfigError: If the spec is malformed or does not name an existing switch
    """
    parts = str(spec).split('.')
    if len(parts) != 2:
        raise ConfigError(f"Invalid switch spec format: {spec} (expected format: collection.index)")

    collection_name, index_str = parts
    collection = collections.get(collection_name)
    if collection is None:
        raise ConfigError(f"Collection {collection_name} not found for switch {switch_name}")

    try:
        index = int(index_str)
    except ValueError:
        raise ConfigError(f"Invalid switch index {index_str} for switch {switch_name}")

    count = collection.count_switches()
    if index < 0 or index >= count:
        raise ConfigError(
            f"Switch index {index} out of range for collection {collection_name} "
            f"(max: {count - 1}) for switch {switch_name}"
        )

    try:
        sw = collection.get_switch(index)
    except SwitchError as e:
        raise ConfigError(f"Failed to get switch {index} from collection {collection_name}: {e}")

    return ResolvedSwitch(name=switch_name, collection=collection, index=index, switch=sw)


def build_switch_tables(
    collections_config: Dict[str, Any],
    switches_config: Dict[str, Any],
    groups_config: Dict[str, Any],
    registry: DriverRegistry
) -> Tuple[Dict[str, SwitchCollection], Dict[str, ResolvedSwitch], Dict[str, SwitchGroup]]:
    """
    Create collections, resolve named switches and assemble groups.

    Returns:
        Tuple of (collections, switches, groups) keyed by name
    """
    collections: Dict[str, SwitchCollection] = {}
    for name, cfg in collections_config.items():
        driver = cfg.get('driver')
        logger.info(f"Creating {driver} collection '{name}'")
        try:
            collections[name] = registry.create(driver, cfg.get('driverconfig', {}))
        except ConfigError as e:
            raise ConfigError(f"Failed to create {driver} driver for collection {name}: {e}")

    switches: Dict[str, ResolvedSwitch] = {}
    for name, cfg in switches_config.items():
        switches[name] = resolve_switch(name, cfg.get('spec'), collections)

    groups: Dict[str, SwitchGroup] = {}
    for name, cfg in groups_config.items():
        members: Dict[str, ResolvedSwitch] = {}
        for switch_name in cfg.get('switches', []):
            if switch_name not in switches:
                raise ConfigError(f"Switch {switch_name} not found for group {name}")
            members[switch_name] = switches[switch_name]
        groups[name] = SwitchGroup(name, members)

    logger.info(
        f"Built {len(collections)} collection(s), {len(switches)} switch(es), {len(groups)} group(s)"
    )
    return collections, switches, groups
