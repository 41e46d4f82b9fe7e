"""Provider abstraction for the host."""

from .base import (
    AuditRecord,
    AuditRecordType,
    AuditResult,
    Auditor,
    ContainerConnectionEvent,
    ContainerEngineType,
    ContainerProviderConnection,
    KubernetesProviderConnection,
    KubernetesProviderConnectionEndpoint,
    KubernetesProviderConnectionFactory,
    ProviderConnectionLifecycle,
    ProviderConnectionStatus,
    ProviderOptions,
)
from .registry import Provider, ProviderRegistry, get_provider_registry, reset_provider_registry

__all__ = [
    "AuditRecord",
    "AuditRecordType",
    "AuditResult",
    "Auditor",
    "ContainerConnectionEvent",
    "ContainerEngineType",
    "ContainerProviderConnection",
    "KubernetesProviderConnection",
    "KubernetesProviderConnectionEndpoint",
    "KubernetesProviderConnectionFactory",
    "Provider",
    "ProviderConnectionLifecycle",
    "ProviderConnectionStatus",
    "ProviderOptions",
    "ProviderRegistry",
    "get_provider_registry",
    "reset_provider_registry",
]
