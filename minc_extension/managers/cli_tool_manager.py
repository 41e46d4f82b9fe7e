"""Detection, install, update and uninstall of the minc CLI."""

from __future__ import annotations

import logging
import os
from typing import List, Optional

import aiohttp

from minc_extension.helpers.file_helper import FileHelper
from minc_extension.helpers.github_helper import GitHubHelper, ReleaseArtifact
from minc_extension.managers import cli_tool_lifecycle as lifecycle
from minc_extension.managers.cli_tool_lifecycle import (
    CLI_NAME,
    BinaryRecord,
    CliToolState,
    CliToolStatus,
    ReleasePlan,
)
from minc_extension.shared.cli_tools import CliTool, CliToolInfo, CliToolRegistry, InstallationSource
from minc_extension.shared.errors import MincError
from minc_extension.shared.events import Disposable
from minc_extension.shared.utils import ProcessLogger

_logger = logging.getLogger(__name__)

CLI_DISPLAY_NAME = "Minc"
CLI_MARKDOWN = "Minc MicroShift CLI"


class MincUpdate:
    """Update hook registered on the minc tool."""

    def __init__(self, manager: "CliToolManager") -> None:
        self._manager = manager

    @property
    def version(self) -> Optional[str]:
        return self._manager.state.available_version

    async def select_version(self) -> str:
        return await self._manager.select_update_version()

    async def do_update(self, logger: Optional[ProcessLogger] = None) -> None:
        await self._manager.update()


class MincInstaller:
    """Install/uninstall hook registered on the minc tool."""

    def __init__(self, manager: "CliToolManager") -> None:
        self._manager = manager

    async def select_version(self) -> str:
        return await self._manager.select_install_version()

    async def do_install(self, logger: Optional[ProcessLogger] = None) -> None:
        await self._manager.install()

    async def do_uninstall(self, logger: Optional[ProcessLogger] = None) -> None:
        await self._manager.uninstall()


class CliToolManager:
    """Owns the minc binary record and runs the effects planned by :mod:`cli_tool_lifecycle`."""

    def __init__(
        self,
        github_helper: GitHubHelper,
        file_helper: FileHelper,
        cli_registry: CliToolRegistry,
    ) -> None:
        self.github_helper = github_helper
        self.file_helper = file_helper
        self.cli_registry = cli_registry
        self._state = CliToolState()
        self._cli_tool: Optional[CliTool] = None
        self._disposables: List[Disposable] = []
        self.update_hook: Optional[MincUpdate] = None
        self.installer_hook: Optional[MincInstaller] = None

    @property
    def state(self) -> CliToolState:
        return self._state

    @property
    def status(self) -> CliToolStatus:
        return self._state.status

    @property
    def cli_tool(self) -> Optional[CliTool]:
        return self._cli_tool

    def get_path(self) -> Optional[str]:
        return self._state.path

    def is_installed(self) -> bool:
        return bool(self._state.path)

    async def _detect(self) -> Optional[BinaryRecord]:
        try:
            info = await self.file_helper.get_minc_binary_info(CLI_NAME)
            system_path = self.file_helper.get_system_binary_path(CLI_NAME)
            source = (
                InstallationSource.EXTENSION
                if os.path.normpath(info.path) == os.path.normpath(system_path)
                else InstallationSource.EXTERNAL
            )
            return BinaryRecord(path=info.path, version=info.version, installation_source=source)
        except (MincError, ValueError, OSError) as exc:
            _logger.info("No system-wide %s found: %s", CLI_NAME, exc)

        try:
            info = await self.file_helper.get_minc_binary_info(self.github_helper.get_cli_storage_path())
            return BinaryRecord(path=info.path, version=info.version, installation_source=InstallationSource.EXTENSION)
        except (MincError, ValueError, OSError) as exc:
            _logger.info("No %s in extension storage: %s", CLI_NAME, exc)
        return None

    def _plan_for(self, release: ReleaseArtifact) -> ReleasePlan:
        return ReleasePlan(release=release, version=self.file_helper.remove_version_prefix(release.tag))

    async def register_cli_tool(self) -> CliTool:
        """Detect the binary, register the tool and, unless external, its update and installer hooks."""

        self._state = lifecycle.detected(self._state, await self._detect())
        state = self._state

        tool = self.cli_registry.create_cli_tool(
            CliToolInfo(
                name=CLI_NAME,
                display_name=CLI_DISPLAY_NAME,
                markdown_description=CLI_MARKDOWN,
                version=state.version,
                path=state.path,
                installation_source=state.installation_source,
                images={"icon": "./icon.png"},
            )
        )
        self._cli_tool = tool
        self._disposables.append(Disposable(tool.dispose))

        if state.installation_source is InstallationSource.EXTERNAL:
            _logger.info("%s at %s is managed outside of the extension", CLI_NAME, state.path)
            return tool

        try:
            latest = await self.github_helper.get_latest_version_asset()
            self._state = lifecycle.record_latest(self._state, self._plan_for(latest))
        except (MincError, aiohttp.ClientError, OSError, ValueError, KeyError) as exc:
            _logger.error("Error when downloading %s CLI latest release information: %s", CLI_NAME, exc)

        self.update_hook = MincUpdate(self)
        self.installer_hook = MincInstaller(self)
        self._disposables.append(tool.register_update(self.update_hook))
        self._disposables.append(tool.register_installer(self.installer_hook))
        return tool

    async def _download_and_install(self, release: ReleaseArtifact) -> str:
        """Download ``release`` and copy it system-wide; the storage copy is used when that fails."""

        cli_path = await self.github_helper.download(release)
        try:
            cli_path = await self.file_helper.install_binary_to_system(cli_path, CLI_NAME)
        except MincError as exc:
            _logger.warning("%s not installed system-wide. Error: %s", CLI_NAME, exc)
        return cli_path

    def _publish(self) -> None:
        if self._cli_tool is None:
            return
        self._cli_tool.update_version(
            self._state.version,
            path=self._state.path,
            installation_source=self._state.installation_source,
        )

    async def install_latest(self) -> str:
        latest = self._plan_for(await self.github_helper.get_latest_version_asset())
        cli_path = await self._download_and_install(latest.release)
        self._state = lifecycle.installed(lifecycle.record_latest(self._state, latest), latest, cli_path)
        self._publish()
        return cli_path

    async def select_update_version(self) -> str:
        release = await self.github_helper.prompt_user_for_version(self._state.version)
        plan = self._plan_for(release)
        self._state = lifecycle.select_update(self._state, plan)
        return plan.version

    async def select_install_version(self) -> str:
        release = await self.github_helper.prompt_user_for_version()
        plan = self._plan_for(release)
        self._state = lifecycle.select_install(self._state, plan)
        return plan.version

    async def update(self) -> None:
        self._state, plan = lifecycle.plan_update(self._state)
        try:
            cli_path = await self._download_and_install(plan.release)
        except BaseException:
            self._state = lifecycle.abort_operation(self._state)
            raise
        self._state = lifecycle.complete_update(self._state, plan, cli_path)
        self._publish()

    async def install(self) -> None:
        self._state, plan = lifecycle.plan_install(self._state)
        try:
            cli_path = await self._download_and_install(plan.release)
        except BaseException:
            self._state = lifecycle.abort_operation(self._state)
            raise
        self._state = lifecycle.complete_install(self._state, plan, cli_path)
        self._publish()

    async def uninstall(self) -> None:
        self._state = lifecycle.plan_uninstall(self._state)
        try:
            await self.file_helper.delete_file(self.github_helper.get_cli_storage_path())
            await self.file_helper.delete_executable_as_admin(self.file_helper.get_system_binary_path(CLI_NAME))
        except BaseException:
            self._state = lifecycle.abort_operation(self._state)
            raise
        self._state = lifecycle.complete_uninstall(self._state)
        self._publish()

    def dispose(self) -> None:
        for disposable in reversed(self._disposables):
            disposable.dispose()
        self._disposables.clear()
        self._cli_tool = None
