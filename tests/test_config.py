import copy
from pathlib import Path

import pytest
import yaml

from hwdhcp.config.config import (
    CONFIG_PATH_ENV,
    DEFAULT_CONFIG_PATH,
    Config,
    resolve_config_path,
)


@pytest.fixture
def real_config():
    try:
        config = Config(path=DEFAULT_CONFIG_PATH)
    except yaml.YAMLError as e:
        pytest.fail(f"Error parsin YAML {e}.")
    except Exception as e:
        pytest.fail(f"Failed loading config {e}.")
    return config


def test_config_path(real_config):
    assert isinstance(real_config._path, Path)
    assert real_config._path.is_file(), f"Not a filepath: {real_config._path}."


def test_config_sections(real_config):
    dhcp = real_config.get("dhcp")
    assert dhcp["port"] == 67
    assert dhcp["lease_time_seconds"] == 86400
    assert dhcp["subnet"] is None
    assert real_config.get("logging")["version"] == 1


def test_config_get_returns_copy(real_config):
    dhcp = real_config.get("dhcp")
    dhcp["port"] = 6767
    assert real_config.get("dhcp")["port"] == 67


def test_config_get_invalid_key(real_config):
    with pytest.raises(ValueError):
        real_config.get("")
    with pytest.raises(ValueError):
        real_config.get(None)
    with pytest.raises(RuntimeError):
        real_config.get("missing")


def test_config_reload(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("dhcp:\n  port: 1067\n", encoding="utf-8")
    config = Config(path=path)
    _previous_config = copy.deepcopy(config._config)

    path.write_text("dhcp:\n  port: 2067\n", encoding="utf-8")
    config.reload()

    assert _previous_config["dhcp"]["port"] == 1067
    assert config.get("dhcp")["port"] == 2067


def test_config_path_from_environment(tmp_path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text("dhcp:\n  port: 1067\nlogging:\n  version: 1\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_PATH_ENV, str(path))

    assert resolve_config_path() == path
    config = Config()
    assert config.path == path
    assert config.get("dhcp")["port"] == 1067


def test_config_default_path(monkeypatch):
    monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
    assert resolve_config_path() == DEFAULT_CONFIG_PATH


def test_config_rejects_non_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- dhcp\n- logging\n", encoding="utf-8")
    with pytest.raises(ValueError):
        Config(path=path)
