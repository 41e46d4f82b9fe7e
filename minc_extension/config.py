"""Configuration management for the minc extension.

Settings live in ``$XDG_CONFIG_HOME/minc-extension/config.yaml``. A few
environment variables override the stored values so CI and one-off runs do
not need to touch the file.
"""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from minc_extension.shared.errors import ConfigError

APP_DIR_NAME = "minc-extension"

DEFAULT_CONFIG: Dict[str, Any] = {
    "storage_path": None,
    "github": {
        "owner": "minc-org",
        "repository": "minc",
        "token": None,
    },
    # Empty list means auto-detect podman/docker sockets.
    "engines": [],
    "telemetry": {"enabled": True},
    "log_level": "INFO",
    "events": {"reconnect_delay": 5.0},
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _parse_scalar(raw: str) -> Any:
    """Interpret a CLI-provided value the way YAML would."""

    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw


class ConfigManager:
    """Load, update and persist extension settings."""

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        self.config_dir = config_dir or default_config_dir()
        self.config_file = self.config_dir / "config.yaml"

    def load_config(self) -> Dict[str, Any]:
        if not self.config_file.exists():
            return copy.deepcopy(DEFAULT_CONFIG)
        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                stored = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid configuration in {self.config_file}: {exc}") from exc
        if not isinstance(stored, dict):
            raise ConfigError(f"Invalid configuration in {self.config_file}")
        return _merge(DEFAULT_CONFIG, stored)

    def save_config(self, config: Dict[str, Any]) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w", encoding="utf-8") as f:
            yaml.safe_dump(config, f, default_flow_style=False, sort_keys=True)

    def get(self, key: str, default: Any = None) -> Any:
        """Read a dotted key such as ``github.owner``."""

        node: Any = self.load_config()
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        """Persist a dotted key. String values are parsed as YAML scalars."""

        if isinstance(value, str):
            value = _parse_scalar(value)
        config = self.load_config()
        node = config
        parts = key.split(".")
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value
        self.save_config(config)

    # typed accessors

    def get_storage_path(self) -> Path:
        override = os.environ.get("MINC_EXTENSION_STORAGE") or self.get("storage_path")
        if override:
            return Path(override).expanduser()
        data_home = os.environ.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
        return Path(data_home) / APP_DIR_NAME

    def get_github_repository(self) -> tuple[str, str]:
        return (
            self.get("github.owner", DEFAULT_CONFIG["github"]["owner"]),
            self.get("github.repository", DEFAULT_CONFIG["github"]["repository"]),
        )

    def get_github_token(self) -> Optional[str]:
        return os.environ.get("GITHUB_TOKEN") or self.get("github.token")

    def get_engines(self) -> List[Dict[str, str]]:
        engines = self.get("engines") or []
        if not isinstance(engines, list):
            raise ConfigError("'engines' must be a list of {type, socket, name} entries")
        return engines

    def is_telemetry_enabled(self) -> bool:
        return bool(self.get("telemetry.enabled", True))

    def get_log_level(self) -> str:
        return str(os.environ.get("MINC_EXTENSION_LOG_LEVEL") or self.get("log_level", "INFO")).upper()

    def get_reconnect_delay(self) -> float:
        value = self.get("events.reconnect_delay", 5.0)
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"'events.reconnect_delay' must be a number, got {value!r}") from exc


def default_config_dir() -> Path:
    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(config_home) / APP_DIR_NAME


_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Return the process-wide manager for the current config directory."""

    global _config_manager
    config_dir = default_config_dir()
    if _config_manager is None or _config_manager.config_dir != config_dir:
        _config_manager = ConfigManager(config_dir)
    return _config_manager
