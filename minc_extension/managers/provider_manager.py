"""Creates the MicroShift provider and keeps its clusters tracked."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from minc_extension.engine.container_engine import ContainerEngine, ContainerEngineEvent
from minc_extension.helpers.create_cluster_helper import CreateClusterHelper
from minc_extension.managers.cli_tool_manager import CliToolManager
from minc_extension.managers.cluster_reconciler import ClusterReconciler
from minc_extension.shared import env as host_env
from minc_extension.shared.errors import CliNotInstalledError, CommandNotFoundError, ProcessExecError
from minc_extension.shared.events import Disposable
from minc_extension.shared.prompt import UserPrompt
from minc_extension.shared.providers.base import (
    AuditRecord,
    AuditRecordType,
    AuditResult,
    Auditor,
    ContainerConnectionEvent,
    ContainerEngineType,
    KubernetesProviderConnectionFactory,
    ProviderConnectionStatus,
    ProviderOptions,
)
from minc_extension.shared.providers.registry import Provider, ProviderRegistry
from minc_extension.shared.utils import CancellationToken, ProcessLogger, ProcessRunner, exec_process

_logger = logging.getLogger(__name__)

PROVIDER_ID = "microshift"
PROVIDER_NAME = "MicroShift"
CREATION_DISPLAY_NAME = "Minc cluster"
EMPTY_CONNECTION_MARKDOWN = (
    "minc is a MicroShift utility to run a local MicroShift cluster\n"
    " using a single-container node providing an easy way to create and manage"
    " Kubernetes environments for development and testing.\n\n"
    "More information: [minc-org](https://github.com/minc-org/minc/)"
)
INSTALL_QUESTION = "minc is not installed, do you want to install the latest version?"

ROOTLESS_LINUX = "MINC requires a rootful podman. It is not possible to create a minc cluster in rootless mode."
ROOTLESS_MACHINE = "MINC requires a rootful Podman Machine. Please start a rootful Podman machine and try again."
ROOTLESS_UNKNOWN = "Unable to check if podman is using rootless or rootful"
PODMAN_MISSING = "Podman is not installed. Minc is only working with a podman container engine for now."


class ProviderManager:
    """Registers the provider, its connection factory and the cluster tracking."""

    def __init__(
        self,
        provider_registry: ProviderRegistry,
        cli_tool_manager: CliToolManager,
        create_cluster_helper: CreateClusterHelper,
        reconciler: ClusterReconciler,
        engine: ContainerEngine,
        prompt: UserPrompt,
        runner: ProcessRunner = exec_process,
    ) -> None:
        self.provider_registry = provider_registry
        self.cli_tool_manager = cli_tool_manager
        self.create_cluster_helper = create_cluster_helper
        self.reconciler = reconciler
        self.engine = engine
        self.prompt = prompt
        self._run = runner
        self.provider: Optional[Provider] = None
        self._disposables: List[Disposable] = []

    async def create(self) -> Provider:
        provider = self.provider_registry.create_provider(
            ProviderOptions(
                id=PROVIDER_ID,
                name=PROVIDER_NAME,
                status="unknown",
                images={
                    "icon": "./icon.png",
                    "logo": {"dark": "./logo-dark.png", "light": "./logo-light.png"},
                },
                empty_connection_markdown_description=EMPTY_CONNECTION_MARKDOWN,
            )
        )
        self.provider = provider
        self._disposables.append(Disposable(provider.dispose))
        self._disposables.append(
            provider.set_kubernetes_provider_connection_factory(
                KubernetesProviderConnectionFactory(
                    create=self.create_cluster,
                    creation_display_name=CREATION_DISPLAY_NAME,
                ),
                Auditor(audit_items=self._audit_items),
            )
        )
        self.reconciler.attach(provider)
        await self.track()
        return provider

    async def create_cluster(
        self,
        params: Mapping[str, Any],
        logger: Optional[ProcessLogger] = None,
        token: Optional[CancellationToken] = None,
    ) -> None:
        """Create a cluster, offering to install the CLI first when it is missing."""

        cli_path = self.cli_tool_manager.get_path()
        if not cli_path:
            answer = await self.prompt.show_information_message(INSTALL_QUESTION, "Cancel", "Confirm")
            if answer != "Confirm":
                raise CliNotInstalledError("Unable to create minc cluster. No minc cli detected")
            cli_path = await self.cli_tool_manager.install_latest()

        if not cli_path:
            raise CliNotInstalledError("minc cli is not installed")

        await self.create_cluster_helper.create(cli_path, params, logger, token)

    async def track(self) -> None:
        """Rescan on container events and container connection changes, then scan once."""

        async def on_engine_event(event: ContainerEngineEvent) -> None:
            if event.type == "container":
                await self.reconciler.refresh_from_event(f"container {event.action}")

        def on_connection(source: str):
            async def _listener(event: ContainerConnectionEvent) -> None:
                await self.reconciler.refresh_from_event(f"{source} of {event.connection.name}")

            return _listener

        self._disposables.extend(
            [
                self.engine.on_event(on_engine_event),
                self.provider_registry.on_did_update_container_connection(on_connection("update")),
                self.provider_registry.on_did_register_container_connection(on_connection("registration")),
                self.provider_registry.on_did_unregister_container_connection(on_connection("unregistration")),
            ]
        )
        await self.reconciler.refresh()

    async def _audit_items(self, _params: Dict[str, Any]) -> AuditResult:
        return AuditResult(records=await self.audit_records())

    async def audit_records(self) -> List[AuditRecord]:
        """Check that clusters can be created: minc needs a rootful podman."""

        if host_env.is_linux():
            return await self._audit_linux()

        connections = [
            event.connection
            for event in self.provider_registry.get_container_connections()
            if event.connection.type is ContainerEngineType.PODMAN
            and event.connection.status() is ProviderConnectionStatus.STARTED
        ]
        records: List[AuditRecord] = []
        for connection in connections:
            try:
                result = await self._run(
                    "podman",
                    ["info", "--format", "json"],
                    env={"CONTAINER_HOST": f"unix://{connection.socket_path}"},
                )
            except CommandNotFoundError:
                return [AuditRecord(AuditRecordType.WARNING, PODMAN_MISSING)]
            except ProcessExecError as exc:
                records.append(AuditRecord(AuditRecordType.WARNING, f"{ROOTLESS_UNKNOWN}: {exc}"))
                continue
            records.extend(self._rootless_records(result.stdout))
        return records

    async def _audit_linux(self) -> List[AuditRecord]:
        try:
            result = await self._run("id", ["-u"])
        except ProcessExecError as exc:
            return [AuditRecord(AuditRecordType.WARNING, f"Unable to check the current user id: {exc}")]
        if result.stdout.strip() == "0":
            return []
        return [AuditRecord(AuditRecordType.ERROR, ROOTLESS_LINUX)]

    @staticmethod
    def _rootless_records(raw: str) -> List[AuditRecord]:
        try:
            info = json.loads(raw)
        except json.JSONDecodeError as exc:
            return [AuditRecord(AuditRecordType.WARNING, f"{ROOTLESS_UNKNOWN}: {exc}")]
        rootless = (((info or {}).get("host") or {}).get("security") or {}).get("rootless")
        if rootless is None:
            return [AuditRecord(AuditRecordType.WARNING, f"{ROOTLESS_UNKNOWN} with host.security.rootless")]
        if rootless:
            return [AuditRecord(AuditRecordType.ERROR, ROOTLESS_MACHINE)]
        return []

    def dispose(self) -> None:
        for disposable in reversed(self._disposables):
            disposable.dispose()
        self._disposables.clear()
        self.provider = None
