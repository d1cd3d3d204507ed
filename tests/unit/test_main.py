"""Unit tests for application wiring in main.py."""

from unittest.mock import patch

import pytest
import yaml

from main import build_controller
from src.config.config_loader import Config, ConfigError


def load_config(tmp_path, monkeypatch, data):
    monkeypatch.delenv('PULSERELAY_MQTT_SERVER', raising=False)
    path = tmp_path / 'config.yaml'
    path.write_text(yaml.safe_dump(data))
    return Config(str(path))


BASIC = {
    'collections': {'bench': {'driver': 'dummy', 'driverconfig': {'switch_count': 2}}},
    'switches': {'lamp': {'spec': 'bench.0'}, 'fan': {'spec': 'bench.1'}},
    'groups': {'room': {'switches': ['lamp', 'fan']}},
}


def test_build_controller(tmp_path, monkeypatch):
    controller = build_controller(load_config(tmp_path, monkeypatch, BASIC))
    assert controller.list_targets() == {'switches': ['lamp', 'fan'], 'groups': ['room']}
    assert controller.publisher is None


def test_build_controller_with_mqtt(tmp_path, monkeypatch):
    data = dict(BASIC, mqtt={'server': 'mqtt://broker.local', 'client_id': 'test'})
    with patch('main.MqttEventPublisher') as publisher_cls:
        controller = build_controller(load_config(tmp_path, monkeypatch, data))
    publisher_cls.assert_called_once_with('mqtt://broker.local', client_id='test')
    publisher_cls.return_value.connect.assert_called_once()
    assert controller.publisher is publisher_cls.return_value


def test_build_controller_bad_spec(tmp_path, monkeypatch):
    data = dict(BASIC, switches={'lamp': {'spec': 'bench.9'}})
    data['groups'] = {}
    with pytest.raises(ConfigError, match="out of range"):
        build_controller(load_config(tmp_path, monkeypatch, data))
