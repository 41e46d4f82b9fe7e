"""Registry for providers and their connections."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from minc_extension.shared.events import Disposable, EventEmitter
from minc_extension.shared.providers.base import (
    Auditor,
    ContainerConnectionEvent,
    ContainerProviderConnection,
    KubernetesProviderConnection,
    KubernetesProviderConnectionFactory,
    ProviderConnectionStatus,
    ProviderOptions,
)
from minc_extension.shared.providers.errors import ProviderAlreadyRegisteredError

_logger = logging.getLogger(__name__)


class Provider:
    """A provider created by an extension, holding its connections."""

    def __init__(self, options: ProviderOptions, on_dispose=None) -> None:
        self.options = options
        self.status = options.status
        self._kubernetes_connections: List[KubernetesProviderConnection] = []
        self._factory: Optional[KubernetesProviderConnectionFactory] = None
        self._auditor: Optional[Auditor] = None
        self._disposable = Disposable(on_dispose)

    @property
    def id(self) -> str:
        return self.options.id

    @property
    def name(self) -> str:
        return self.options.name

    @property
    def kubernetes_connections(self) -> List[KubernetesProviderConnection]:
        return list(self._kubernetes_connections)

    @property
    def kubernetes_connection_factory(self) -> Optional[KubernetesProviderConnectionFactory]:
        return self._factory

    @property
    def kubernetes_connection_auditor(self) -> Optional[Auditor]:
        return self._auditor

    def set_kubernetes_provider_connection_factory(
        self, factory: KubernetesProviderConnectionFactory, auditor: Optional[Auditor] = None
    ) -> Disposable:
        self._factory = factory
        self._auditor = auditor

        def _unset() -> None:
            if self._factory is factory:
                self._factory = None
                self._auditor = None

        return Disposable(_unset)

    def register_kubernetes_provider_connection(
        self, connection: KubernetesProviderConnection
    ) -> Disposable:
        self._kubernetes_connections.append(connection)
        _logger.debug("Registered kubernetes connection %s", connection.name)

        def _unregister() -> None:
            if connection in self._kubernetes_connections:
                self._kubernetes_connections.remove(connection)
                _logger.debug("Unregistered kubernetes connection %s", connection.name)

        return Disposable(_unregister)

    def dispose(self) -> None:
        self._kubernetes_connections.clear()
        self._factory = None
        self._auditor = None
        self._disposable.dispose()


class ProviderRegistry:
    """Host-side registry of providers and container engine connections."""

    def __init__(self) -> None:
        self._providers: Dict[str, Provider] = {}
        self._container_connections: Dict[str, ContainerConnectionEvent] = {}
        self._on_did_update = EventEmitter[ContainerConnectionEvent]("update-container-connection")
        self._on_did_register = EventEmitter[ContainerConnectionEvent]("register-container-connection")
        self._on_did_unregister = EventEmitter[ContainerConnectionEvent]("unregister-container-connection")

    def create_provider(self, options: ProviderOptions) -> Provider:
        if options.id in self._providers:
            raise ProviderAlreadyRegisteredError(f"Provider {options.id} is already registered")
        provider = Provider(options, on_dispose=lambda: self._providers.pop(options.id, None))
        self._providers[options.id] = provider
        return provider

    def get(self, provider_id: str) -> Optional[Provider]:
        return self._providers.get(provider_id)

    # container connection notifications

    def on_did_update_container_connection(self, listener) -> Disposable:
        return self._on_did_update.event(listener)

    def on_did_register_container_connection(self, listener) -> Disposable:
        return self._on_did_register.event(listener)

    def on_did_unregister_container_connection(self, listener) -> Disposable:
        return self._on_did_unregister.event(listener)

    def get_container_connections(self) -> List[ContainerConnectionEvent]:
        return list(self._container_connections.values())

    def register_container_connection(
        self, provider_id: str, connection: ContainerProviderConnection
    ) -> Disposable:
        event = ContainerConnectionEvent(
            provider_id=provider_id,
            connection=connection,
            status=connection.status(),
        )
        self._container_connections[connection.name] = event
        self._on_did_register.fire(event)

        def _unregister() -> None:
            if self._container_connections.pop(connection.name, None) is not None:
                self._on_did_unregister.fire(event)

        return Disposable(_unregister)

    def update_container_connection(
        self, connection: ContainerProviderConnection, status: ProviderConnectionStatus
    ) -> None:
        event = self._container_connections.get(connection.name)
        if event is None:
            return
        event.status = status
        self._on_did_update.fire(event)

    def dispose(self) -> None:
        for emitter in (self._on_did_update, self._on_did_register, self._on_did_unregister):
            emitter.dispose()
        for provider in list(self._providers.values()):
            provider.dispose()
        self._container_connections.clear()


_REGISTRY: Optional[ProviderRegistry] = None


def get_provider_registry() -> ProviderRegistry:
    global _REGISTRY
    if _REGISTRY is None:
        _REGISTRY = ProviderRegistry()
    return _REGISTRY


def reset_provider_registry() -> None:
    """Drop the process-wide registry (used on deactivation)."""

    global _REGISTRY
    if _REGISTRY is not None:
        _REGISTRY.dispose()
    _REGISTRY = None
