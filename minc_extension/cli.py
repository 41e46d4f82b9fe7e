"""minc-extension command line: the host surface for clusters and the minc CLI."""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, NoReturn, Optional

import aiohttp
import click
import yaml
from rich.console import Console
from rich.table import Table

from minc_extension.config import get_config_manager
from minc_extension.extension import MincExtension
from minc_extension.helpers.create_cluster_helper import HTTP_PORT_KEY, HTTPS_PORT_KEY
from minc_extension.shared import debug
from minc_extension.shared.errors import MincError
from minc_extension.shared.prompt import ClickPrompt, PresetPrompt, UserPrompt
from minc_extension.shared.providers.base import AuditRecordType, KubernetesProviderConnection

console = Console()


class EchoProcessLogger:
    """Forward process output to the terminal."""

    def log(self, message: str) -> None:
        click.echo(message)

    def warn(self, message: str) -> None:
        click.echo(message, err=True)

    def error(self, message: str) -> None:
        click.echo(message, err=True)


@asynccontextmanager
async def activated(prompt: Optional[UserPrompt] = None) -> AsyncIterator[MincExtension]:
    extension = MincExtension(prompt=prompt)
    await extension.activate()
    try:
        yield extension
    finally:
        await extension.deactivate()


def fail(error: Exception) -> NoReturn:
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)


def run(action: Callable[[], Awaitable[Any]]) -> Any:
    """Run an async command body, reporting extension errors on stderr."""

    try:
        return asyncio.run(action())
    except (MincError, aiohttp.ClientError) as e:
        fail(e)


def _find_connection(extension: MincExtension, name: str) -> KubernetesProviderConnection:
    provider = extension.provider_manager.provider
    for connection in provider.kubernetes_connections if provider else []:
        if connection.name == name:
            return connection
    raise MincError(f"Cluster '{name}' not found")


def _clusters_table(extension: MincExtension) -> Table:
    table = Table(title="MicroShift clusters")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Endpoint")
    table.add_column("Engine")
    for entry in extension.reconciler.registered_connections:
        table.add_row(
            entry.connection.name,
            entry.connection.status().value,
            entry.connection.endpoint.api_url,
            entry.cluster.engine_id,
        )
    return table


@click.group(help="Manage MicroShift clusters created with minc, and the minc CLI itself.")
@click.option("--debug", "debug_mode", is_flag=True, help="Enable verbose debug logging.")
@click.pass_context
def cli(ctx: click.Context, debug_mode: bool) -> None:
    """Root command for the minc extension CLI."""
    try:
        level = getattr(logging, get_config_manager().get_log_level(), logging.INFO)
    except MincError as e:
        fail(e)
    debug.configure_root(level)
    if debug_mode:
        debug.enable()
    ctx.ensure_object(dict)


@cli.command(help="List the MicroShift clusters found on the container engines.")
def clusters() -> None:
    async def _list() -> None:
        async with activated() as extension:
            if not extension.reconciler.registered_connections:
                click.echo("No MicroShift cluster found.")
                return
            console.print(_clusters_table(extension))

    run(_list)


@cli.command(help="Create a new MicroShift cluster.")
@click.option("--http-port", type=int, default=None, help="Host port for HTTP ingress (default 80).")
@click.option("--https-port", type=int, default=None, help="Host port for HTTPS ingress (default 443).")
@click.option("--yes", "-y", is_flag=True, help="Install the minc CLI without asking when missing.")
def create(http_port: Optional[int], https_port: Optional[int], yes: bool) -> None:
    params: Dict[str, Any] = {}
    if http_port is not None:
        params[HTTP_PORT_KEY] = http_port
    if https_port is not None:
        params[HTTPS_PORT_KEY] = https_port
    prompt = PresetPrompt(answer="Confirm") if yes else ClickPrompt()

    async def _create() -> None:
        async with activated(prompt) as extension:
            factory = extension.provider_manager.provider.kubernetes_connection_factory
            await factory.create(params, EchoProcessLogger())
        click.echo("Cluster created.")

    run(_create)


def _lifecycle_command(action: str, help_text: str) -> None:
    @cli.command(action, help=help_text)
    @click.argument("name")
    def _command(name: str) -> None:
        async def _run() -> None:
            async with activated() as extension:
                connection = _find_connection(extension, name)
                await getattr(connection.lifecycle, action)()
            click.echo(f"Cluster {name}: {action} done.")

        run(_run)


_lifecycle_command("start", "Start the container of a cluster.")
_lifecycle_command("stop", "Stop the container of a cluster.")
_lifecycle_command("delete", "Delete the cluster with `minc delete`.")


@cli.command(help="Check the environment can run minc clusters.")
def audit() -> None:
    async def _audit() -> bool:
        async with activated() as extension:
            records = await extension.provider_manager.audit_records()
        if not records:
            click.echo("No issue found.")
            return True
        for record in records:
            click.echo(f"[{record.type.value}] {record.record}")
        return all(record.type is not AuditRecordType.ERROR for record in records)

    if not run(_audit):
        sys.exit(1)


@cli.command(help="Track clusters and print changes until interrupted.")
@click.option("--interval", type=float, default=1.0, show_default=True, help="Display refresh interval.")
def watch(interval: float) -> None:
    async def _watch() -> None:
        async with activated() as extension:
            last = None
            while True:
                snapshot = [
                    (e.connection.name, e.connection.status().value, e.connection.endpoint.api_url)
                    for e in extension.reconciler.registered_connections
                ]
                if snapshot != last:
                    console.print(_clusters_table(extension))
                    last = snapshot
                await asyncio.sleep(interval)

    try:
        run(_watch)
    except KeyboardInterrupt:
        pass


@cli.group("cli-tool", help="Install, update or remove the minc CLI.")
def cli_tool() -> None:
    """minc CLI lifecycle commands."""


@cli_tool.command("status")
def cli_tool_status() -> None:
    """Show the detected minc CLI."""

    async def _status() -> None:
        async with activated() as extension:
            manager = extension.cli_tool_manager
            state = manager.state
            table = Table(show_header=False)
            table.add_row("Status", state.status.value)
            table.add_row("Version", state.version or "-")
            table.add_row("Path", state.path or "-")
            table.add_row("Installed by", state.installation_source.value if state.installation_source else "-")
            table.add_row("Latest", state.latest_version or "-")
            console.print(table)

    run(_status)


def _selection_prompt(version: Optional[str]) -> UserPrompt:
    return PresetPrompt(selection=version) if version else ClickPrompt()


def _require_hooks(extension: MincExtension) -> None:
    manager = extension.cli_tool_manager
    if manager.installer_hook is None or manager.update_hook is None:
        raise MincError(f"minc at {manager.get_path()} is not managed by the extension")


@cli_tool.command("install")
@click.option("--version", "version", default=None, help="Release tag to install, e.g. v0.0.3.")
def cli_tool_install(version: Optional[str]) -> None:
    """Install the minc CLI."""

    async def _install() -> None:
        async with activated(_selection_prompt(version)) as extension:
            _require_hooks(extension)
            installer = extension.cli_tool_manager.installer_hook
            selected = await installer.select_version()
            await installer.do_install(EchoProcessLogger())
            click.echo(f"minc {selected} installed in {extension.cli_tool_manager.get_path()}")

    run(_install)


@cli_tool.command("update")
@click.option("--version", "version", default=None, help="Release tag to switch to; the latest when omitted.")
def cli_tool_update(version: Optional[str]) -> None:
    """Update (or downgrade) the minc CLI."""

    async def _update() -> None:
        async with activated(_selection_prompt(version)) as extension:
            _require_hooks(extension)
            update = extension.cli_tool_manager.update_hook
            if version:
                await update.select_version()
            await update.do_update(EchoProcessLogger())
            click.echo(f"minc updated to {extension.cli_tool_manager.state.version}")

    run(_update)


@cli_tool.command("uninstall")
def cli_tool_uninstall() -> None:
    """Remove the minc CLI installed by the extension."""

    async def _uninstall() -> None:
        async with activated() as extension:
            _require_hooks(extension)
            await extension.cli_tool_manager.installer_hook.do_uninstall(EchoProcessLogger())
        click.echo("minc uninstalled.")

    run(_uninstall)


@cli.group(help="Show or change extension settings.")
def config() -> None:
    """Configuration commands."""


@config.command("show")
def show_config() -> None:
    """Show current configuration."""
    config_manager = get_config_manager()
    try:
        current = config_manager.load_config()
    except MincError as e:
        fail(e)
    click.echo(f"# {config_manager.config_file}")
    click.echo(yaml.safe_dump(current, default_flow_style=False, sort_keys=True))


@config.command("set")
@click.argument("key")
@click.argument("value")
def set_config(key: str, value: str) -> None:
    """Set a dotted KEY (e.g. github.token) to VALUE."""
    config_manager = get_config_manager()
    try:
        config_manager.set(key, value)
    except MincError as e:
        fail(e)
    click.echo(f"{key} = {config_manager.get(key)!r}")


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
