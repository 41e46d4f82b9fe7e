"""Keeps the registered Kubernetes connections in line with the cluster containers.

Scans are queued on a :class:`SerialTaskExecutor`, so at most one
scan-and-reconcile pass runs at a time. :meth:`ClusterReconciler.reconcile`
itself never awaits: once the container list is in hand the registry is
updated in a single step of the event loop.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from minc_extension.engine.container_engine import ContainerEngine, ContainerInfo
from minc_extension.helpers.cluster_search_helper import ClusterSearchHelper
from minc_extension.managers.minc_cluster import MincCluster
from minc_extension.shared.errors import CliNotInstalledError
from minc_extension.shared.events import Disposable
from minc_extension.shared.providers.base import (
    KubernetesProviderConnection,
    KubernetesProviderConnectionEndpoint,
    ProviderConnectionLifecycle,
    ProviderConnectionStatus,
)
from minc_extension.shared.providers.registry import Provider
from minc_extension.shared.task_queue import SerialTaskExecutor
from minc_extension.shared.utils import ProcessRunner, exec_process

_logger = logging.getLogger(__name__)


@dataclass
class RegisteredConnection:
    connection: KubernetesProviderConnection
    disposable: Disposable
    cluster: MincCluster


def _status_accessor(cluster: MincCluster) -> Callable[[], ProviderConnectionStatus]:
    return lambda: cluster.status


class ClusterReconciler:
    def __init__(
        self,
        search_helper: ClusterSearchHelper,
        engine: ContainerEngine,
        get_cli_path: Callable[[], Optional[str]],
        runner: ProcessRunner = exec_process,
    ) -> None:
        self.search_helper = search_helper
        self.engine = engine
        self._get_cli_path = get_cli_path
        self._run = runner
        self._provider: Optional[Provider] = None
        self._clusters: List[MincCluster] = []
        self._registered: Dict[str, RegisteredConnection] = {}
        self._executor = SerialTaskExecutor("cluster-reconciler")

    def attach(self, provider: Provider) -> None:
        self._provider = provider

    @property
    def clusters(self) -> List[MincCluster]:
        return list(self._clusters)

    @property
    def registered_connections(self) -> List[RegisteredConnection]:
        return list(self._registered.values())

    def get_cluster(self, name: str) -> Optional[MincCluster]:
        entry = self._registered.get(name)
        return entry.cluster if entry else None

    async def refresh(self) -> None:
        """Queue a full scan-and-reconcile pass and wait for it.

        A scan failure is raised to the caller and leaves the registry as it was.
        """

        await self._executor.submit(self._scan_and_reconcile)

    async def refresh_from_event(self, source: str) -> None:
        try:
            await self.refresh()
        except Exception as exc:
            _logger.error("Cluster scan triggered by %s failed: %s", source, exc)

    async def _scan_and_reconcile(self) -> None:
        containers = await self.search_helper.search()
        self.reconcile(containers)

    @staticmethod
    def target_clusters(containers: Iterable[ContainerInfo]) -> List[MincCluster]:
        """Clusters carried by ``containers``; the first container wins a duplicated name."""

        clusters: List[MincCluster] = []
        seen: Dict[str, MincCluster] = {}
        for container in containers:
            cluster = MincCluster.from_container(container)
            if cluster is None:
                continue
            # One registered connection per cluster name; later duplicates are
            # dropped, so clusters can be fewer than the labelled containers.
            if cluster.name in seen:
                _logger.warning(
                    "Ignoring container %s: cluster %s is already provided by container %s",
                    container.id,
                    cluster.name,
                    seen[cluster.name].id,
                )
                continue
            seen[cluster.name] = cluster
            clusters.append(cluster)
        return clusters

    def reconcile(self, containers: Iterable[ContainerInfo]) -> None:
        if self._provider is None:
            raise RuntimeError("Reconciler is not attached to a provider")

        clusters = self.target_clusters(containers)
        self._clusters = clusters

        for cluster in clusters:
            entry = self._registered.get(cluster.name)
            if entry is None:
                connection = KubernetesProviderConnection(
                    name=cluster.name,
                    status=_status_accessor(cluster),
                    endpoint=KubernetesProviderConnectionEndpoint(api_url=cluster.api_url),
                    lifecycle=self._lifecycle(cluster.name, cluster),
                )
                disposable = self._provider.register_kubernetes_provider_connection(connection)
                self._registered[cluster.name] = RegisteredConnection(connection, disposable, cluster)
                _logger.info("Cluster %s registered (%s)", cluster.name, cluster.status.value)
            else:
                entry.cluster = cluster
                entry.connection.status = _status_accessor(cluster)
                entry.connection.endpoint.api_url = cluster.api_url

        names = {cluster.name for cluster in clusters}
        for name in [name for name in self._registered if name not in names]:
            entry = self._registered.pop(name)
            entry.disposable.dispose()
            _logger.info("Cluster %s removed", name)

    def _current(self, name: str, fallback: MincCluster) -> MincCluster:
        entry = self._registered.get(name)
        return entry.cluster if entry else fallback

    def _lifecycle(self, name: str, initial: MincCluster) -> ProviderConnectionLifecycle:
        async def start() -> None:
            cluster = self._current(name, initial)
            await self.engine.start_container(cluster.engine_id, cluster.id)

        async def stop() -> None:
            cluster = self._current(name, initial)
            await self.engine.stop_container(cluster.engine_id, cluster.id)

        async def delete() -> None:
            cli_path = self._get_cli_path()
            if not cli_path:
                raise CliNotInstalledError("minc cli is not installed")
            await self._run(cli_path, ["delete"])

        return ProviderConnectionLifecycle(start=start, stop=stop, delete=delete)

    async def dispose(self) -> None:
        await self._executor.shutdown()
        for entry in self._registered.values():
            entry.disposable.dispose()
        self._registered.clear()
        self._clusters = []
