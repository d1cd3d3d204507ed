"""Unit tests for the driver registry and switch table construction."""

import pytest

from src.config.config_loader import ConfigError
from src.switches.dummy import DummySwitchCollection
from src.switches.kasa_switch import KasaSwitchCollection
from src.switches.registry import (
    DriverRegistry,
    DummyFactory,
    build_default_registry,
    build_switch_tables,
    resolve_switch,
)
from src.switches.tasmota import TasmotaSwitchCollection


@pytest.fixture
def registry():
    return build_default_registry()


class TestDriverRegistry:
    """Tests for DriverRegistry."""

    def test_default_drivers(self, registry):
        assert registry.list_drivers() == ['dummy', 'kasa', 'tasmota']

    def test_duplicate_registration(self):
        registry = DriverRegistry()
        registry.register('dummy', DummyFactory())
        with pytest.raises(ValueError, match="already registered"):
            registry.register('dummy', DummyFactory())

    def test_unknown_driver(self, registry):
        with pytest.raises(ConfigError, match="Unknown driver: gpio"):
            registry.create('gpio', {})

    def test_dummy_default_count(self, registry):
        collection = registry.create('dummy', {})
        assert isinstance(collection, DummySwitchCollection)
        assert collection.count_switches() == 4

    def test_dummy_rejects_negative_count(self, registry):
        with pytest.raises(ConfigError, match="switch_count"):
            registry.validate_config('dummy', {'switch_count': -1})

    def test_tasmota(self, registry):
        collection = registry.create('tasmota', {'addresses': ['10.0.0.5', 'http://10.0.0.6/']})
        assert isinstance(collection, TasmotaSwitchCollection)
        assert [sw.address for sw in collection.switches] == ['http://10.0.0.5', 'http://10.0.0.6']
        assert collection.switches[0].timeout == 5

    def test_tasmota_requires_addresses(self, registry):
        with pytest.raises(ConfigError, match="at least one address"):
            registry.validate_config('tasmota', {'addresses': []})

    def test_tasmota_rejects_bad_timeout(self, registry):
        with pytest.raises(ConfigError, match="timeout"):
            registry.validate_config('tasmota', {'addresses': ['a'], 'timeout': 0})

    def test_kasa_shares_devices_between_outlets(self, registry):
        collection = registry.create('kasa', {
            'username': 'user@example.com',
            'password': 'secret',
            'devices': [
                {'ip_address': '10.0.0.7'},
                {'ip_address': '10.0.0.8', 'outlet': 0},
                {'ip_address': '10.0.0.8', 'outlet': 1},
            ],
        })
        assert isinstance(collection, KasaSwitchCollection)
        assert [str(sw) for sw in collection.switches] == [
            'kasa:10.0.0.7', 'kasa:10.0.0.8/0', 'kasa:10.0.0.8/1'
        ]
        assert collection.switches[1].device is collection.switches[2].device

    def test_kasa_requires_credentials(self, registry):
        with pytest.raises(ConfigError, match="username and password"):
            registry.validate_config('kasa', {'devices': [{'ip_address': '10.0.0.7'}]})

    def test_kasa_rejects_bad_outlet(self, registry):
        with pytest.raises(ConfigError, match="outlet"):
            registry.validate_config('kasa', {
                'username': 'u', 'password': 'p',
                'devices': [{'ip_address': '10.0.0.7', 'outlet': -2}],
            })


class TestResolveSwitch:
    """Tests for resolving collection.index specs."""

    @pytest.fixture
    def collections(self):
        return {'bench': DummySwitchCollection(2)}

    def test_resolves(self, collections):
        resolved = resolve_switch('lamp', 'bench.1', collections)
        assert resolved.name == 'lamp'
        assert resolved.index == 1
        assert resolved.collection is collections['bench']
        assert resolved.switch is collections['bench'].get_switch(1)

    @pytest.mark.parametrize('spec,message', [
        ('bench', "Invalid switch spec format"),
        ('bench.0.1', "Invalid switch spec format"),
        ('garage.0', "Collection garage not found for switch lamp"),
        ('bench.x', "Invalid switch index x for switch lamp"),
        ('bench.2', "Switch index 2 out of range for collection bench"),
        ('bench.-1', "out of range"),
    ])
    def test_invalid_specs(self, collections, spec, message):
        with pytest.raises(ConfigError, match=message):
            resolve_switch('lamp', spec, collections)


class TestBuildSwitchTables:
    """Tests for build_switch_tables."""

    def test_builds_everything(self, registry):
        collections, switches, groups = build_switch_tables(
            {'bench': {'driver': 'dummy', 'driverconfig': {'switch_count': 3}}},
            {'a': {'spec': 'bench.0'}, 'b': {'spec': 'bench.2'}},
            {'both': {'switches': ['b', 'a']}},
            registry,
        )
        assert list(collections) == ['bench']
        assert switches['b'].switch is collections['bench'].get_switch(2)
        assert groups['both'].list_member_names() == ['b', 'a']

    def test_group_with_unknown_member(self, registry):
        with pytest.raises(ConfigError, match="Switch missing not found for group g"):
            build_switch_tables(
                {'bench': {'driver': 'dummy'}},
                {'a': {'spec': 'bench.0'}},
                {'g': {'switches': ['a', 'missing']}},
                registry,
            )

    def test_driver_error_names_collection(self, registry):
        with pytest.raises(ConfigError, match="collection porch"):
            build_switch_tables(
                {'porch': {'driver': 'tasmota', 'driverconfig': {}}},
                {},
                {},
                registry,
            )
