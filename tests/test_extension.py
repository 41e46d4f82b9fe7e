import pytest

from conftest import PODMAN, RecordingPrompt, RecordingTelemetry, make_container
from minc_extension import extension as extension_module
from minc_extension.config import ConfigManager
from minc_extension.engine.container_engine import EngineConnectionChange
from minc_extension.extension import MincExtension
from minc_extension.helpers.github_helper import ReleaseArtifact
from minc_extension.shared.cli_tools import CliToolRegistry, InstallationSource
from minc_extension.shared.providers.base import ProviderConnectionStatus
from minc_extension.shared.providers.registry import ProviderRegistry


@pytest.fixture
def registry():
    return ProviderRegistry()


@pytest.fixture
def cli_registry():
    return CliToolRegistry()


@pytest.fixture
def extension(tmp_path, engine, fake_runner, registry, cli_registry, monkeypatch, linux):
    monkeypatch.setenv("MINC_EXTENSION_STORAGE", str(tmp_path / "storage"))
    fake_runner.on("minc", "version", stdout="version: 0.0.4")
    fake_runner.on("which", "minc", stdout="/usr/local/bin/minc")
    ext = MincExtension(
        config=ConfigManager(tmp_path / "config"),
        prompt=RecordingPrompt(),
        runner=fake_runner,
        engine=engine,
        provider_registry=registry,
        cli_registry=cli_registry,
        telemetry=RecordingTelemetry(),
    )

    async def latest():
        return ReleaseArtifact(label="v0.0.5", tag="v0.0.5", id=5)

    monkeypatch.setattr(ext.github_helper, "get_latest_version_asset", latest)
    return ext


@pytest.mark.asyncio
async def test_activate_wires_everything(extension, engine, registry, cli_registry):
    engine.containers = [make_container("c1", cluster="microshift")]

    await extension.activate()

    tool = cli_registry.get("minc")
    assert tool.version == "0.0.4"
    assert tool.installation_source is InstallationSource.EXTENSION
    assert tool.update.version == "0.0.5"
    provider = registry.get("microshift")
    assert [c.name for c in provider.kubernetes_connections] == ["microshift"]
    [event] = registry.get_container_connections()
    assert event.provider_id == "podman"
    assert event.connection.socket_path == PODMAN.socket_path
    assert extension.active

    await extension.deactivate()


@pytest.mark.asyncio
async def test_engine_reachability_updates_container_connection(extension, engine, registry):
    await extension.activate()

    engine.on_did_change_connection.fire(EngineConnectionChange(PODMAN, ProviderConnectionStatus.STOPPED))

    assert registry.get_container_connections()[0].status is ProviderConnectionStatus.STOPPED
    await extension.deactivate()


@pytest.mark.asyncio
async def test_deactivate_releases_registrations(extension, engine, registry, cli_registry):
    engine.containers = [make_container("c1", cluster="microshift")]
    await extension.activate()

    await extension.deactivate()

    assert registry.get("microshift") is None
    assert registry.get_container_connections() == []
    assert cli_registry.get("minc") is None
    assert engine.closed
    assert not extension.active


@pytest.mark.asyncio
async def test_failed_activation_is_rolled_back(extension, engine, registry):
    engine.error = ConnectionError("engine down")

    with pytest.raises(ConnectionError):
        await extension.activate()

    assert registry.get("microshift") is None
    assert engine.closed
    assert not extension.active


@pytest.mark.asyncio
async def test_module_level_activation(extension):
    activated = await extension_module.activate(extension)

    assert extension_module.get_extension() is activated
    assert activated.active

    await extension_module.deactivate()
    assert extension_module.get_extension() is None
    assert not extension.active
