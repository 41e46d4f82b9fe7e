"""Tests for the minc-extension CLI."""

from contextlib import asynccontextmanager
from types import SimpleNamespace

import pytest
import yaml
from click.testing import CliRunner

from conftest import FakeContainerEngine, make_container
from minc_extension import cli as cli_module
from minc_extension.cli import cli
from minc_extension.helpers.cluster_search_helper import ClusterSearchHelper
from minc_extension.helpers.create_cluster_helper import HTTP_PORT_KEY
from minc_extension.managers.cli_tool_lifecycle import CliToolState
from minc_extension.managers.cluster_reconciler import ClusterReconciler
from minc_extension.shared.errors import ClusterCreationError
from minc_extension.shared.prompt import PresetPrompt
from minc_extension.shared.providers.base import (
    AuditRecord,
    AuditRecordType,
    KubernetesProviderConnectionFactory,
    ProviderOptions,
)
from minc_extension.shared.providers.registry import ProviderRegistry


@pytest.fixture
def runner():
    """Create a CLI runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def config_home(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.delenv("MINC_EXTENSION_LOG_LEVEL", raising=False)
    return tmp_path / "config"


class FakeExtension:
    """Just enough of an activated extension for the commands."""

    def __init__(self, containers=(), audit=()):
        self.engine = FakeContainerEngine()
        self.provider = ProviderRegistry().create_provider(ProviderOptions(id="microshift", name="MicroShift"))
        self.created = []
        self.create_error = None
        self.reconciler = ClusterReconciler(ClusterSearchHelper(self.engine), self.engine, lambda: None)
        self.reconciler.attach(self.provider)
        self.reconciler.reconcile(list(containers))

        async def create(params, logger=None, token=None):
            if self.create_error is not None:
                raise self.create_error
            self.created.append(params)

        async def audit_records():
            return list(audit)

        self.provider.set_kubernetes_provider_connection_factory(
            KubernetesProviderConnectionFactory(create=create, creation_display_name="Minc cluster")
        )
        self.provider_manager = SimpleNamespace(provider=self.provider, audit_records=audit_records)
        self.cli_tool_manager = SimpleNamespace(
            state=CliToolState(), installer_hook=None, update_hook=None, get_path=lambda: "/home/me/bin/minc"
        )


@pytest.fixture
def use_extension(monkeypatch):
    prompts = []

    def _use(extension):
        @asynccontextmanager
        async def fake_activated(prompt=None):
            prompts.append(prompt)
            yield extension

        monkeypatch.setattr(cli_module, "activated", fake_activated)
        return prompts

    return _use


def test_cli_help(runner):
    """Test CLI help command."""
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    for command in ("clusters", "create", "start", "stop", "delete", "audit", "cli-tool", "config"):
        assert command in result.output


def test_clusters_empty(runner, use_extension):
    use_extension(FakeExtension())

    result = runner.invoke(cli, ["clusters"])

    assert result.exit_code == 0
    assert "No MicroShift cluster found." in result.output


def test_clusters_table(runner, use_extension):
    use_extension(FakeExtension([make_container("c1", cluster="microshift", api_port=6443)]))

    result = runner.invoke(cli, ["clusters"])

    assert result.exit_code == 0
    assert "microshift" in result.output
    assert "started" in result.output
    assert "https://localhost:6443" in result.output


def test_create_passes_ports_and_confirms(runner, use_extension):
    extension = FakeExtension()
    prompts = use_extension(extension)

    result = runner.invoke(cli, ["create", "--http-port", "8080", "-y"])

    assert result.exit_code == 0, result.output
    assert extension.created == [{HTTP_PORT_KEY: 8080}]
    assert isinstance(prompts[0], PresetPrompt)
    assert prompts[0].answer == "Confirm"
    assert "Cluster created." in result.output


def test_create_failure_exits_with_error(runner, use_extension):
    extension = FakeExtension()
    extension.create_error = ClusterCreationError("Failed to create minc cluster. port in use")
    use_extension(extension)

    result = runner.invoke(cli, ["create", "-y"])

    assert result.exit_code == 1
    assert "Error: Failed to create minc cluster. port in use" in result.output


def test_stop_cluster(runner, use_extension):
    extension = FakeExtension([make_container("c1", cluster="microshift")])
    use_extension(extension)

    result = runner.invoke(cli, ["stop", "microshift"])

    assert result.exit_code == 0, result.output
    assert extension.engine.stopped == [("podman.podman", "c1")]


def test_unknown_cluster(runner, use_extension):
    use_extension(FakeExtension())

    result = runner.invoke(cli, ["start", "nope"])

    assert result.exit_code == 1
    assert "Cluster 'nope' not found" in result.output


def test_delete_without_cli(runner, use_extension):
    use_extension(FakeExtension([make_container("c1", cluster="microshift")]))

    result = runner.invoke(cli, ["delete", "microshift"])

    assert result.exit_code == 1
    assert "minc cli is not installed" in result.output


def test_audit_reports_errors(runner, use_extension):
    use_extension(
        FakeExtension(
            audit=[
                AuditRecord(AuditRecordType.WARNING, "Unable to check"),
                AuditRecord(AuditRecordType.ERROR, "MINC requires a rootful podman."),
            ]
        )
    )

    result = runner.invoke(cli, ["audit"])

    assert result.exit_code == 1
    assert "[error] MINC requires a rootful podman." in result.output


def test_audit_clean(runner, use_extension):
    use_extension(FakeExtension())

    result = runner.invoke(cli, ["audit"])

    assert result.exit_code == 0
    assert "No issue found." in result.output


def test_cli_tool_status(runner, use_extension):
    use_extension(FakeExtension())

    result = runner.invoke(cli, ["cli-tool", "status"])

    assert result.exit_code == 0
    assert "not-installed" in result.output


def test_external_cli_cannot_be_uninstalled(runner, use_extension):
    use_extension(FakeExtension())

    result = runner.invoke(cli, ["cli-tool", "uninstall"])

    assert result.exit_code == 1
    assert "minc at /home/me/bin/minc is not managed by the extension" in result.output


def test_config_set_and_show(runner, config_home):
    result = runner.invoke(cli, ["config", "set", "github.owner", "my-fork"])
    assert result.exit_code == 0
    assert "github.owner = 'my-fork'" in result.output

    result = runner.invoke(cli, ["config", "show"])
    assert result.exit_code == 0
    shown = yaml.safe_load("\n".join(line for line in result.output.splitlines() if not line.startswith("#")))
    assert shown["github"]["owner"] == "my-fork"
    assert str(config_home) in result.output


def write_config(config_home, text):
    config_dir = config_home / "minc-extension"
    config_dir.mkdir(parents=True)
    (config_dir / "config.yaml").write_text(text)


def test_invalid_engines_config_is_reported(runner, config_home):
    write_config(config_home, "engines: bad\n")

    result = runner.invoke(cli, ["clusters"])

    assert result.exit_code == 1
    assert "Error: 'engines' must be a list of {type, socket, name} entries" in result.output
    assert isinstance(result.exception, SystemExit)


def test_unreadable_config_is_reported_before_any_command(runner, config_home):
    write_config(config_home, "- just\n- a list\n")

    result = runner.invoke(cli, ["config", "show"])

    assert result.exit_code == 1
    assert "Error: Invalid configuration in" in result.output
