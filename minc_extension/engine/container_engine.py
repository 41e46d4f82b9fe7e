"""Podman/Docker compatible REST client over unix sockets."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

import aiohttp

from minc_extension.shared import debug
from minc_extension.shared.errors import ConfigError, ContainerEngineError
from minc_extension.shared.events import Disposable, EventEmitter
from minc_extension.shared.providers.base import ContainerEngineType, ProviderConnectionStatus

_logger = logging.getLogger(__name__)

# Host part is ignored when talking over a unix socket.
BASE_URL = "http://d"


@dataclass
class EngineConnection:
    """One reachable (or expected) container engine API socket."""

    engine_type: ContainerEngineType
    name: str
    socket_path: str

    @property
    def engine_id(self) -> str:
        return f"{self.engine_type.value}.{self.name}"


@dataclass
class ContainerPort:
    private_port: int
    type: str
    public_port: Optional[int] = None
    ip: Optional[str] = None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ContainerPort":
        return ContainerPort(
            private_port=int(data.get("PrivatePort", 0)),
            public_port=data.get("PublicPort"),
            type=data.get("Type", "tcp"),
            ip=data.get("IP"),
        )


@dataclass
class ContainerInfo:
    """Container summary as listed by the engine."""

    id: str
    engine_id: str
    engine_type: ContainerEngineType
    engine_name: str
    state: str
    names: List[str] = field(default_factory=list)
    image: str = ""
    status: str = ""
    labels: Dict[str, str] = field(default_factory=dict)
    ports: List[ContainerPort] = field(default_factory=list)

    @staticmethod
    def from_dict(data: Dict[str, Any], connection: EngineConnection) -> "ContainerInfo":
        return ContainerInfo(
            id=data["Id"],
            engine_id=connection.engine_id,
            engine_type=connection.engine_type,
            engine_name=connection.name,
            state=data.get("State", ""),
            names=list(data.get("Names") or []),
            image=data.get("Image", ""),
            status=data.get("Status", ""),
            labels=dict(data.get("Labels") or {}),
            ports=[ContainerPort.from_dict(p) for p in data.get("Ports") or []],
        )


@dataclass
class ContainerEngineEvent:
    """A single entry of the engine event stream."""

    type: str
    action: str
    id: Optional[str]
    engine_id: str

    @staticmethod
    def from_dict(data: Dict[str, Any], connection: EngineConnection) -> "ContainerEngineEvent":
        actor = data.get("Actor") or {}
        return ContainerEngineEvent(
            type=data.get("Type") or data.get("type") or "",
            action=data.get("Action") or data.get("status") or "",
            id=actor.get("ID") or data.get("id"),
            engine_id=connection.engine_id,
        )


@dataclass
class EngineConnectionChange:
    connection: EngineConnection
    status: ProviderConnectionStatus


def detect_engine_connections(configured: Optional[Sequence[Dict[str, str]]] = None) -> List[EngineConnection]:
    """Build engine connections from configuration, or probe well-known sockets."""

    if configured:
        connections = []
        for entry in configured:
            if not isinstance(entry, dict):
                raise ConfigError(f"Engine entry {entry!r} must be a mapping")
            try:
                engine_type = ContainerEngineType(entry.get("type", "podman"))
            except ValueError as exc:
                raise ConfigError(f"Engine entry {entry!r} has an unknown type") from exc
            socket_path = entry.get("socket")
            if not socket_path:
                raise ConfigError(f"Engine entry {entry!r} has no socket")
            connections.append(
                EngineConnection(
                    engine_type=engine_type,
                    name=entry.get("name") or engine_type.value,
                    socket_path=_strip_scheme(socket_path),
                )
            )
        return connections

    candidates: List[EngineConnection] = []
    container_host = os.environ.get("CONTAINER_HOST", "")
    if container_host.startswith("unix://"):
        candidates.append(EngineConnection(ContainerEngineType.PODMAN, "podman", _strip_scheme(container_host)))
    docker_host = os.environ.get("DOCKER_HOST", "")
    if docker_host.startswith("unix://"):
        candidates.append(EngineConnection(ContainerEngineType.DOCKER, "docker", _strip_scheme(docker_host)))

    candidates.append(EngineConnection(ContainerEngineType.PODMAN, "podman-rootful", "/run/podman/podman.sock"))
    runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
    if runtime_dir:
        candidates.append(
            EngineConnection(ContainerEngineType.PODMAN, "podman", str(Path(runtime_dir) / "podman" / "podman.sock"))
        )
    candidates.append(
        EngineConnection(
            ContainerEngineType.PODMAN,
            "podman-machine",
            str(Path.home() / ".local" / "share" / "containers" / "podman" / "machine" / "podman.sock"),
        )
    )
    candidates.append(EngineConnection(ContainerEngineType.DOCKER, "docker", "/var/run/docker.sock"))

    seen = set()
    found = []
    for candidate in candidates:
        if candidate.socket_path in seen or candidate.engine_id in {c.engine_id for c in found}:
            continue
        seen.add(candidate.socket_path)
        if os.path.exists(candidate.socket_path):
            found.append(candidate)
    return found


def _strip_scheme(value: str) -> str:
    return value[len("unix://"):] if value.startswith("unix://") else value


class ContainerEngine:
    """Aggregates every configured engine behind one interface."""

    def __init__(
        self,
        connections: Iterable[EngineConnection],
        reconnect_delay: float = 5.0,
        session_factory: Optional[Callable[[EngineConnection], aiohttp.ClientSession]] = None,
    ) -> None:
        self._connections: Dict[str, EngineConnection] = {c.engine_id: c for c in connections}
        self._reconnect_delay = reconnect_delay
        self._session_factory = session_factory or self._unix_session
        self._sessions: Dict[str, aiohttp.ClientSession] = {}
        self._reachable: Dict[str, bool] = {}
        self._watchers: Dict[str, asyncio.Task[None]] = {}
        self._on_event = EventEmitter[ContainerEngineEvent]("container-engine-event")
        self.on_did_change_connection = EventEmitter[EngineConnectionChange]("engine-connection-change")

    @property
    def connections(self) -> List[EngineConnection]:
        return list(self._connections.values())

    def status(self, engine_id: str) -> ProviderConnectionStatus:
        reachable = self._reachable.get(engine_id)
        if reachable is None:
            return ProviderConnectionStatus.UNKNOWN
        return ProviderConnectionStatus.STARTED if reachable else ProviderConnectionStatus.STOPPED

    @staticmethod
    def _unix_session(connection: EngineConnection) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(connector=aiohttp.UnixConnector(path=connection.socket_path))

    def _session(self, connection: EngineConnection) -> aiohttp.ClientSession:
        session = self._sessions.get(connection.engine_id)
        if session is None or session.closed:
            session = self._session_factory(connection)
            self._sessions[connection.engine_id] = session
        return session

    def _connection(self, engine_id: str) -> EngineConnection:
        connection = self._connections.get(engine_id)
        if connection is None:
            raise ContainerEngineError(f"Unknown container engine '{engine_id}'")
        return connection

    async def _request(
        self,
        connection: EngineConnection,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        expected: Sequence[int] = (200,),
    ) -> Any:
        debug.log_request(connection.engine_id, {"method": method, "path": path, "params": params})
        session = self._session(connection)
        async with session.request(method, f"{BASE_URL}{path}", params=params) as response:
            if response.status not in expected:
                body = await response.text()
                try:
                    detail = json.loads(body).get("message", body)
                except (json.JSONDecodeError, AttributeError):
                    detail = body
                raise ContainerEngineError(
                    f"{connection.name}: {method} {path} failed with HTTP {response.status}: {detail}"
                )
            if response.status in (204, 304):
                return None
            payload = await response.json(content_type=None)
        debug.log_response(connection.engine_id, {"path": path, "status": response.status})
        return payload

    async def list_containers(self) -> List[ContainerInfo]:
        """List containers (running or not) on every reachable engine."""

        containers: List[ContainerInfo] = []
        for connection in self.connections:
            try:
                payload = await self._request(connection, "GET", "/containers/json", params={"all": "true"})
            except aiohttp.ClientConnectionError as exc:
                _logger.warning("Container engine %s is not reachable: %s", connection.name, exc)
                self._set_reachable(connection, False)
                continue
            self._set_reachable(connection, True)
            containers.extend(ContainerInfo.from_dict(item, connection) for item in payload or [])
        return containers

    async def start_container(self, engine_id: str, container_id: str) -> None:
        connection = self._connection(engine_id)
        await self._request(connection, "POST", f"/containers/{container_id}/start", expected=(204, 304))

    async def stop_container(self, engine_id: str, container_id: str) -> None:
        connection = self._connection(engine_id)
        await self._request(connection, "POST", f"/containers/{container_id}/stop", expected=(204, 304))

    def on_event(self, listener: Callable[[ContainerEngineEvent], Any]) -> Disposable:
        """Subscribe to container events of every engine."""

        subscription = self._on_event.event(listener)
        self._ensure_watchers()
        return subscription

    def _ensure_watchers(self) -> None:
        for connection in self.connections:
            watcher = self._watchers.get(connection.engine_id)
            if watcher is None or watcher.done():
                self._watchers[connection.engine_id] = asyncio.ensure_future(self._watch(connection))

    def _set_reachable(self, connection: EngineConnection, reachable: bool) -> None:
        previous = self._reachable.get(connection.engine_id)
        self._reachable[connection.engine_id] = reachable
        if previous is not reachable:
            self.on_did_change_connection.fire(
                EngineConnectionChange(connection=connection, status=self.status(connection.engine_id))
            )

    async def _watch(self, connection: EngineConnection) -> None:
        params = {"filters": json.dumps({"type": ["container"]})}
        while True:
            try:
                session = self._session(connection)
                async with session.get(
                    f"{BASE_URL}/events",
                    params=params,
                    timeout=aiohttp.ClientTimeout(total=None),
                ) as response:
                    if response.status != 200:
                        raise ContainerEngineError(
                            f"{connection.name}: event stream failed with HTTP {response.status}"
                        )
                    self._set_reachable(connection, True)
                    async for raw in response.content:
                        line = raw.strip()
                        if not line:
                            continue
                        try:
                            data = json.loads(line)
                        except json.JSONDecodeError:
                            _logger.debug("Skipping malformed event from %s: %r", connection.name, line)
                            continue
                        self._on_event.fire(ContainerEngineEvent.from_dict(data, connection))
            except (aiohttp.ClientError, ContainerEngineError, OSError) as exc:
                _logger.debug("Event stream of %s unavailable: %s", connection.name, exc)
            self._set_reachable(connection, False)
            await asyncio.sleep(self._reconnect_delay)

    async def close(self) -> None:
        for watcher in self._watchers.values():
            watcher.cancel()
        for watcher in self._watchers.values():
            try:
                await watcher
            except asyncio.CancelledError:
                pass
        self._watchers.clear()
        self._on_event.dispose()
        self.on_did_change_connection.dispose()
        for session in self._sessions.values():
            await session.close()
        self._sessions.clear()
