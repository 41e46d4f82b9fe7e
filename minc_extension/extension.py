"""Extension wiring: builds every collaborator and runs activation."""

from __future__ import annotations

import logging
from typing import List, Optional

from minc_extension.config import ConfigManager, get_config_manager
from minc_extension.engine.container_engine import (
    ContainerEngine,
    EngineConnection,
    EngineConnectionChange,
    detect_engine_connections,
)
from minc_extension.helpers.cluster_search_helper import ClusterSearchHelper
from minc_extension.helpers.create_cluster_helper import CreateClusterHelper
from minc_extension.helpers.file_helper import FileHelper
from minc_extension.helpers.github_helper import GitHubHelper
from minc_extension.managers.cli_tool_manager import CliToolManager
from minc_extension.managers.cluster_reconciler import ClusterReconciler
from minc_extension.managers.provider_manager import ProviderManager
from minc_extension.shared.cli_tools import CliToolRegistry
from minc_extension.shared.events import Disposable
from minc_extension.shared.prompt import ClickPrompt, UserPrompt
from minc_extension.shared.providers.base import ContainerProviderConnection
from minc_extension.shared.providers.registry import ProviderRegistry, get_provider_registry, reset_provider_registry
from minc_extension.shared.telemetry import LoggingTelemetryLogger, TelemetryLogger
from minc_extension.shared.utils import ProcessRunner, exec_process

_logger = logging.getLogger(__name__)


class MincExtension:
    """Explicitly wired extension instance.

    Every collaborator can be passed in; the defaults are the real
    implementations configured from :class:`ConfigManager`.
    """

    def __init__(
        self,
        config: Optional[ConfigManager] = None,
        prompt: Optional[UserPrompt] = None,
        runner: ProcessRunner = exec_process,
        engine: Optional[ContainerEngine] = None,
        provider_registry: Optional[ProviderRegistry] = None,
        cli_registry: Optional[CliToolRegistry] = None,
        telemetry: Optional[TelemetryLogger] = None,
    ) -> None:
        self.config = config or get_config_manager()
        self.prompt = prompt or ClickPrompt()
        self.provider_registry = provider_registry or get_provider_registry()
        self.cli_registry = cli_registry or CliToolRegistry()
        self.telemetry = telemetry or LoggingTelemetryLogger(enabled=self.config.is_telemetry_enabled())
        self.engine = engine or ContainerEngine(
            detect_engine_connections(self.config.get_engines()),
            reconnect_delay=self.config.get_reconnect_delay(),
        )

        owner, repository = self.config.get_github_repository()
        self.file_helper = FileHelper(runner)
        self.github_helper = GitHubHelper(
            storage_path=self.config.get_storage_path(),
            prompt=self.prompt,
            owner=owner,
            repository=repository,
            token=self.config.get_github_token(),
        )
        self.cluster_search_helper = ClusterSearchHelper(self.engine)
        self.create_cluster_helper = CreateClusterHelper(self.telemetry, runner)
        self.cli_tool_manager = CliToolManager(self.github_helper, self.file_helper, self.cli_registry)
        self.reconciler = ClusterReconciler(
            self.cluster_search_helper,
            self.engine,
            self.cli_tool_manager.get_path,
            runner,
        )
        self.provider_manager = ProviderManager(
            self.provider_registry,
            self.cli_tool_manager,
            self.create_cluster_helper,
            self.reconciler,
            self.engine,
            self.prompt,
            runner,
        )
        self._subscriptions: List[Disposable] = []
        self._engine_connections = {}
        self.active = False

    def _register_engine_connections(self) -> None:
        """Expose every engine socket as a container connection and forward reachability changes."""

        for connection in self.engine.connections:
            self._engine_connections[connection.engine_id] = self._to_provider_connection(connection)
            self._subscriptions.append(
                self.provider_registry.register_container_connection(
                    connection.engine_type.value, self._engine_connections[connection.engine_id]
                )
            )

        def _on_change(change: EngineConnectionChange) -> None:
            provider_connection = self._engine_connections.get(change.connection.engine_id)
            if provider_connection is not None:
                self.provider_registry.update_container_connection(provider_connection, change.status)

        self._subscriptions.append(self.engine.on_did_change_connection.event(_on_change))

    def _to_provider_connection(self, connection: EngineConnection) -> ContainerProviderConnection:
        engine = self.engine
        return ContainerProviderConnection(
            name=connection.name,
            type=connection.engine_type,
            socket_path=connection.socket_path,
            status=lambda: engine.status(connection.engine_id),
        )

    async def activate(self) -> None:
        _logger.info("Activating minc extension")
        self._register_engine_connections()
        try:
            await self.cli_tool_manager.register_cli_tool()
            await self.provider_manager.create()
        except BaseException:
            await self.deactivate()
            raise
        self.active = True

    async def deactivate(self) -> None:
        _logger.info("Deactivating minc extension")
        self.provider_manager.dispose()
        await self.reconciler.dispose()
        self.cli_tool_manager.dispose()
        for subscription in reversed(self._subscriptions):
            subscription.dispose()
        self._subscriptions.clear()
        self._engine_connections.clear()
        await self.engine.close()
        self.active = False


_extension: Optional[MincExtension] = None


def get_extension() -> Optional[MincExtension]:
    return _extension


async def activate(extension: Optional[MincExtension] = None) -> MincExtension:
    """Activate ``extension`` (or a default one) as the process-wide instance."""

    global _extension
    if _extension is not None and _extension.active:
        await _extension.deactivate()
    _extension = extension or MincExtension()
    await _extension.activate()
    return _extension


async def deactivate() -> None:
    global _extension
    if _extension is not None:
        await _extension.deactivate()
    _extension = None
    reset_provider_registry()
