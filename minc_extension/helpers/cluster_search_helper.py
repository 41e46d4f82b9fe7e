from __future__ import annotations

from typing import List

from minc_extension.engine.container_engine import ContainerEngine, ContainerInfo

CLUSTER_LABEL = "io.x-openshift.microshift.cluster"


class ClusterSearchHelper:
    """Finds the containers that are MicroShift cluster nodes."""

    def __init__(self, engine: ContainerEngine) -> None:
        self.engine = engine

    async def search(self) -> List[ContainerInfo]:
        containers = await self.engine.list_containers()
        return [container for container in containers if container.labels.get(CLUSTER_LABEL)]
