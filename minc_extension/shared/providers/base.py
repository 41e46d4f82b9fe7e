"""Provider and connection types shared between the managers and the host."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional


class ProviderConnectionStatus(str, Enum):
    """Lifecycle state reported for a connection."""

    STARTED = "started"
    STOPPED = "stopped"
    STARTING = "starting"
    STOPPING = "stopping"
    UNKNOWN = "unknown"


class ContainerEngineType(str, Enum):
    """Supported container engines."""

    PODMAN = "podman"
    DOCKER = "docker"


@dataclass
class ProviderOptions:
    """Options used to create a provider on the host."""

    id: str
    name: str
    status: str = "unknown"
    images: Dict[str, Any] = field(default_factory=dict)
    empty_connection_markdown_description: Optional[str] = None


@dataclass
class KubernetesProviderConnectionEndpoint:
    api_url: str


@dataclass
class ProviderConnectionLifecycle:
    """Operations the host may run against a connection."""

    start: Callable[[], Awaitable[None]]
    stop: Callable[[], Awaitable[None]]
    delete: Callable[[], Awaitable[None]]


@dataclass
class KubernetesProviderConnection:
    """A Kubernetes cluster as seen by the host.

    ``status`` is a callable so the host always reads the live value.
    """

    name: str
    status: Callable[[], ProviderConnectionStatus]
    endpoint: KubernetesProviderConnectionEndpoint
    lifecycle: Optional[ProviderConnectionLifecycle] = None


@dataclass
class ContainerProviderConnection:
    """A container engine connection (podman machine, docker daemon...)."""

    name: str
    type: ContainerEngineType
    socket_path: str
    status: Callable[[], ProviderConnectionStatus] = lambda: ProviderConnectionStatus.UNKNOWN


@dataclass
class ContainerConnectionEvent:
    """Payload of container connection register/update/unregister notifications."""

    provider_id: str
    connection: ContainerProviderConnection
    status: ProviderConnectionStatus = ProviderConnectionStatus.UNKNOWN


@dataclass
class KubernetesProviderConnectionFactory:
    """Factory the host calls to create a new cluster."""

    create: Callable[..., Awaitable[None]]
    creation_display_name: str


class AuditRecordType(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class AuditRecord:
    type: AuditRecordType
    record: str


@dataclass
class AuditResult:
    """Preflight findings shown before a connection is created."""

    records: List[AuditRecord] = field(default_factory=list)


@dataclass
class Auditor:
    audit_items: Callable[[Dict[str, Any]], Awaitable[AuditResult]]
