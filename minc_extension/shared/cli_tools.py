"""Host registry of command-line tools and their update/install hooks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from minc_extension.shared.events import Disposable, EventEmitter

_logger = logging.getLogger(__name__)


class InstallationSource(str, Enum):
    """Who installed the binary currently in use."""

    EXTENSION = "extension"
    EXTERNAL = "external"


class CliToolUpdate(Protocol):
    """Update hook registered by the owner of a tool."""

    version: Optional[str]

    async def select_version(self) -> str:
        ...

    async def do_update(self, logger: Any = None) -> None:
        ...


class CliToolInstaller(Protocol):
    """Install/uninstall hook registered by the owner of a tool."""

    async def select_version(self) -> str:
        ...

    async def do_install(self, logger: Any = None) -> None:
        ...

    async def do_uninstall(self, logger: Any = None) -> None:
        ...


@dataclass
class CliToolInfo:
    """Snapshot of what the host shows for a tool."""

    name: str
    display_name: str
    markdown_description: str
    version: Optional[str] = None
    path: Optional[str] = None
    installation_source: Optional[InstallationSource] = None
    images: Dict[str, Any] = field(default_factory=dict)


class CliTool:
    """A registered command-line tool."""

    def __init__(self, info: CliToolInfo, on_dispose=None) -> None:
        self._info = info
        self.update: Optional[CliToolUpdate] = None
        self.installer: Optional[CliToolInstaller] = None
        self.on_did_update_version = EventEmitter[CliToolInfo](f"{info.name}-version")
        self._disposable = Disposable(on_dispose)

    @property
    def name(self) -> str:
        return self._info.name

    @property
    def display_name(self) -> str:
        return self._info.display_name

    @property
    def version(self) -> Optional[str]:
        return self._info.version

    @property
    def path(self) -> Optional[str]:
        return self._info.path

    @property
    def installation_source(self) -> Optional[InstallationSource]:
        return self._info.installation_source

    def info(self) -> CliToolInfo:
        return CliToolInfo(**vars(self._info))

    def register_update(self, update: CliToolUpdate) -> Disposable:
        self.update = update

        def _unregister() -> None:
            if self.update is update:
                self.update = None

        return Disposable(_unregister)

    def register_installer(self, installer: CliToolInstaller) -> Disposable:
        self.installer = installer

        def _unregister() -> None:
            if self.installer is installer:
                self.installer = None

        return Disposable(_unregister)

    def update_version(
        self,
        version: Optional[str],
        path: Optional[str] = None,
        installation_source: Optional[InstallationSource] = None,
    ) -> None:
        self._info.version = version
        self._info.path = path
        if installation_source is not None:
            self._info.installation_source = installation_source
        _logger.debug("%s now at version %s (%s)", self.name, version, path)
        self.on_did_update_version.fire(self.info())

    def dispose(self) -> None:
        self.on_did_update_version.dispose()
        self._disposable.dispose()


class CliToolRegistry:
    """Keeps the tools registered by extensions."""

    def __init__(self) -> None:
        self._tools: Dict[str, CliTool] = {}

    def create_cli_tool(self, info: CliToolInfo) -> CliTool:
        tool = CliTool(info, on_dispose=lambda: self._tools.pop(info.name, None))
        self._tools[info.name] = tool
        return tool

    def get(self, name: str) -> Optional[CliTool]:
        return self._tools.get(name)
