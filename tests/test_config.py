"""Tests for the configuration manager."""

from pathlib import Path

import pytest
import yaml

from minc_extension.config import DEFAULT_CONFIG, ConfigManager, get_config_manager
from minc_extension.shared.errors import ConfigError


@pytest.fixture
def config(tmp_path):
    return ConfigManager(tmp_path / "cfg")


def test_defaults_without_file(config):
    assert config.load_config() == DEFAULT_CONFIG
    assert config.get_github_repository() == ("minc-org", "minc")
    assert config.get_engines() == []
    assert config.is_telemetry_enabled()
    assert config.get_reconnect_delay() == 5.0


def test_set_persists_parsed_values(config):
    config.set("events.reconnect_delay", "0.5")
    config.set("telemetry.enabled", "false")
    config.set("github.owner", "my-fork")

    stored = yaml.safe_load(config.config_file.read_text())
    assert stored["events"]["reconnect_delay"] == 0.5
    assert stored["telemetry"]["enabled"] is False
    assert config.get_github_repository() == ("my-fork", "minc")
    assert config.get("github.token") is None


def test_partial_file_is_merged_with_defaults(config):
    config.config_dir.mkdir(parents=True)
    config.config_file.write_text("github:\n  repository: minc-nightly\n")

    assert config.get_github_repository() == ("minc-org", "minc-nightly")
    assert config.get("log_level") == "INFO"


def test_invalid_file(config):
    config.config_dir.mkdir(parents=True)
    config.config_file.write_text("- just\n- a list\n")

    with pytest.raises(ConfigError):
        config.load_config()


def test_engines_must_be_a_list(config):
    config.set("engines", "podman")

    with pytest.raises(ConfigError):
        config.get_engines()


def test_environment_overrides(config, monkeypatch, tmp_path):
    config.set("github.token", "from-file")
    monkeypatch.setenv("GITHUB_TOKEN", "from-env")
    monkeypatch.setenv("MINC_EXTENSION_STORAGE", str(tmp_path / "store"))
    monkeypatch.setenv("MINC_EXTENSION_LOG_LEVEL", "debug")

    assert config.get_github_token() == "from-env"
    assert config.get_storage_path() == tmp_path / "store"
    assert config.get_log_level() == "DEBUG"


def test_storage_path_follows_xdg(config, monkeypatch, tmp_path):
    monkeypatch.delenv("MINC_EXTENSION_STORAGE", raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    assert config.get_storage_path() == tmp_path / "data" / "minc-extension"


def test_manager_follows_config_home(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

    assert get_config_manager().config_dir == Path(tmp_path) / "minc-extension"


def test_malformed_yaml(config):
    config.config_dir.mkdir(parents=True)
    config.config_file.write_text("github: [unclosed\n")

    with pytest.raises(ConfigError, match="Invalid configuration"):
        config.load_config()


def test_reconnect_delay_must_be_a_number(config):
    config.set("events.reconnect_delay", "soon")

    with pytest.raises(ConfigError, match="must be a number"):
        config.get_reconnect_delay()
