from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from minc_extension.engine.container_engine import ContainerInfo
from minc_extension.helpers.cluster_search_helper import CLUSTER_LABEL
from minc_extension.shared.providers.base import ContainerEngineType, ProviderConnectionStatus

API_INTERNAL_PORT = 6443


@dataclass(frozen=True)
class MincCluster:
    """A cluster node container as found by the last scan."""

    name: str
    status: ProviderConnectionStatus
    api_port: int
    engine_type: ContainerEngineType
    engine_id: str
    id: str

    @property
    def api_url(self) -> str:
        return f"https://localhost:{self.api_port}"

    @staticmethod
    def from_container(container: ContainerInfo) -> Optional["MincCluster"]:
        """Build the cluster carried by ``container``; ``None`` when it has no cluster label."""

        name = container.labels.get(CLUSTER_LABEL)
        if not name:
            return None
        status = (
            ProviderConnectionStatus.STARTED
            if container.state == "running"
            else ProviderConnectionStatus.STOPPED
        )
        api_port = 0
        for port in container.ports:
            if port.private_port == API_INTERNAL_PORT and port.type == "tcp":
                api_port = port.public_port or 0
                break
        return MincCluster(
            name=name,
            status=status,
            api_port=api_port,
            engine_type=container.engine_type,
            engine_id=container.engine_id,
            id=container.id,
        )
