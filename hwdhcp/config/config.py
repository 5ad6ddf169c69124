from copy import deepcopy
from os import environ
from pathlib import Path
from threading import RLock
from typing import Any

from yaml import safe_load

CONFIG_PATH_ENV = "HWDHCP_CONFIG_PATH"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


def resolve_config_path() -> Path:
    """Config file named by HWDHCP_CONFIG_PATH, else the packaged config.yaml"""
    _override = environ.get(CONFIG_PATH_ENV)
    return Path(_override) if _override else DEFAULT_CONFIG_PATH


class Config:
    """YAML backed settings, read once and handed out as deep copies."""

    def __init__(self, path: Path | None = None):
        self._lock = RLock()
        self._path: Path = path or resolve_config_path()
        self._config: dict = {}
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self):
        with self._lock:
            with open(self._path, mode="r", encoding="utf-8") as _file_handle:
                _loaded = safe_load(_file_handle) or {}
            if not isinstance(_loaded, dict):
                raise ValueError(f"{self._path} must hold a mapping of sections.")
            self._config = _loaded

    def reload(self):
        """Reload config"""
        self._load()

    def get(self, key: str) -> Any:
        """Get a section from the config.

        Raises:
            ValueError: Key is not a non-empty str.
            RuntimeError: Section does not exist.
        """
        if not isinstance(key, str) or not key:
            raise ValueError("Key must be a non-empty str.")

        with self._lock:
            if key not in self._config:
                raise RuntimeError(f"Unknown config section: {key}.")
            return deepcopy(self._config[key])


config = Config()
