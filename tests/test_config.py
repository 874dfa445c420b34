import json

import pytest

from cashdrawer_bridge.config import DEFAULT_CONFIG, BridgeConfig, get_config_dir


def test_creates_defaults(tmp_path):
    path = tmp_path / 'nested' / 'bridge_config.json'
    config = BridgeConfig(path)

    assert path.exists()
    assert json.loads(path.read_text()) == DEFAULT_CONFIG
    assert config.port == 12322
    assert config.backend == 'auto'
    assert config.drawer_defaults == {'pin': 0, 'pulseOnTime': 50, 'pulseOffTime': 250}


def test_saved_values_override_defaults(tmp_path):
    path = tmp_path / 'bridge_config.json'
    path.write_text(json.dumps({'port': 9999, 'backend': 'cups', 'transport_timeout': 3}))

    config = BridgeConfig(path)

    assert config.port == 9999
    assert config.backend == 'cups'
    assert config.transport_timeout == 3.0
    assert config.host == '127.0.0.1'


def test_malformed_file_uses_defaults(tmp_path):
    path = tmp_path / 'bridge_config.json'
    path.write_text('{not json')

    config = BridgeConfig(path)

    assert config.port == 12322
    assert path.read_text() == '{not json'


def test_non_object_file_uses_defaults(tmp_path):
    path = tmp_path / 'bridge_config.json'
    path.write_text('[1, 2]')
    assert BridgeConfig(path).log_level == 'info'


@pytest.mark.parametrize('value', [None, 'soon', [], -1, 0])
def test_bad_timeouts_fall_back(tmp_path, value):
    path = tmp_path / 'bridge_config.json'
    path.write_text(json.dumps({'transport_timeout': value, 'discovery_timeout': value}))

    config = BridgeConfig(path)

    assert config.transport_timeout == 10.0
    assert config.discovery_timeout == 15.0


def test_numeric_string_timeout(tmp_path):
    path = tmp_path / 'bridge_config.json'
    path.write_text(json.dumps({'transport_timeout': '2.5'}))
    assert BridgeConfig(path).transport_timeout == 2.5


def test_unknown_backend_falls_back(tmp_path):
    path = tmp_path / 'bridge_config.json'
    path.write_text(json.dumps({'backend': 'lpd', 'discovery_source': 'registry'}))

    config = BridgeConfig(path)

    assert config.backend == 'auto'
    assert config.discovery_source == 'native'


def test_set_persists(tmp_path):
    path = tmp_path / 'bridge_config.json'
    BridgeConfig(path).set('drawer_pin', 1)
    assert BridgeConfig(path).drawer_defaults['pin'] == 1


def test_config_dir_linux(tmp_path, monkeypatch):
    monkeypatch.setattr('platform.system', lambda: 'Linux')
    monkeypatch.setenv('XDG_CONFIG_HOME', str(tmp_path))

    assert get_config_dir() == tmp_path / 'CashDrawerBridge'
    assert (tmp_path / 'CashDrawerBridge').is_dir()
