"""Shared fakes for the extension tests."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from minc_extension.engine.container_engine import (
    ContainerEngineEvent,
    ContainerInfo,
    ContainerPort,
    EngineConnection,
    EngineConnectionChange,
)
from minc_extension.helpers.cluster_search_helper import CLUSTER_LABEL
from minc_extension.shared import env as host_env
from minc_extension.shared.events import Disposable, EventEmitter
from minc_extension.shared.prompt import PresetPrompt
from minc_extension.shared.providers.base import ContainerEngineType, ProviderConnectionStatus
from minc_extension.shared.utils import RunResult

PODMAN = EngineConnection(ContainerEngineType.PODMAN, "podman", "/run/podman/podman.sock")


@dataclass
class Call:
    command: str
    args: List[str]
    env: Optional[Dict[str, str]] = None
    is_admin: bool = False
    logger: Any = None
    token: Any = None


class FakeRunner:
    """Process runner answering from canned responses, longest argument prefix first."""

    def __init__(self) -> None:
        self.calls: List[Call] = []
        self._responses: Dict[Tuple[str, Tuple[str, ...]], Tuple[str, Optional[BaseException]]] = {}

    def on(self, command: str, *args: str, stdout: str = "", error: Optional[BaseException] = None) -> None:
        self._responses[(command, tuple(args))] = (stdout, error)

    async def __call__(
        self,
        command: str,
        args: Optional[Sequence[str]] = None,
        *,
        logger: Any = None,
        token: Any = None,
        env: Optional[Dict[str, str]] = None,
        is_admin: bool = False,
    ) -> RunResult:
        args = list(args or [])
        self.calls.append(Call(command, args, env, is_admin, logger, token))
        for size in range(len(args), -1, -1):
            response = self._responses.get((command, tuple(args[:size])))
            if response is None:
                continue
            stdout, error = response
            if error is not None:
                raise error
            return RunResult(command=" ".join([command, *args]), stdout=stdout, stderr="")
        return RunResult(command=" ".join([command, *args]), stdout="", stderr="")

    def commands(self) -> List[List[str]]:
        return [[call.command, *call.args] for call in self.calls]


class RecordingPrompt(PresetPrompt):
    def __init__(self, selection: Optional[str] = None, answer: Optional[str] = None) -> None:
        super().__init__(selection=selection, answer=answer)
        self.quick_picks: List[Tuple[List[Any], str]] = []
        self.messages: List[Tuple[str, Tuple[str, ...]]] = []

    async def show_quick_pick(self, items, placeholder):
        self.quick_picks.append((list(items), placeholder))
        return await super().show_quick_pick(items, placeholder)

    async def show_information_message(self, message, *choices):
        self.messages.append((message, choices))
        return await super().show_information_message(message, *choices)


class RecordingTelemetry:
    def __init__(self) -> None:
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def log_usage(self, event_name: str, data: Optional[Dict[str, Any]] = None) -> None:
        self.events.append((event_name, dict(data or {})))


class FakeContainerEngine:
    """In-memory container engine."""

    def __init__(self, connections: Sequence[EngineConnection] = (PODMAN,)) -> None:
        self.connections = list(connections)
        self.containers: List[ContainerInfo] = []
        self.error: Optional[BaseException] = None
        self.list_calls = 0
        self.started: List[Tuple[str, str]] = []
        self.stopped: List[Tuple[str, str]] = []
        self._events = EventEmitter[ContainerEngineEvent]("fake-engine-event")
        self.on_did_change_connection = EventEmitter[EngineConnectionChange]("fake-engine-change")
        self.closed = False

    def status(self, engine_id: str) -> ProviderConnectionStatus:
        return ProviderConnectionStatus.STARTED

    async def list_containers(self) -> List[ContainerInfo]:
        self.list_calls += 1
        if self.error is not None:
            raise self.error
        return list(self.containers)

    async def start_container(self, engine_id: str, container_id: str) -> None:
        self.started.append((engine_id, container_id))

    async def stop_container(self, engine_id: str, container_id: str) -> None:
        self.stopped.append((engine_id, container_id))

    def on_event(self, listener) -> Disposable:
        return self._events.event(listener)

    def emit(self, event_type: str = "container", action: str = "start"):
        return self._events.fire(
            ContainerEngineEvent(type=event_type, action=action, id="c1", engine_id=PODMAN.engine_id)
        )

    async def close(self) -> None:
        self.closed = True


def make_container(
    container_id: str,
    cluster: Optional[str] = None,
    state: str = "running",
    api_port: Optional[int] = 6443,
    connection: EngineConnection = PODMAN,
    extra_ports: Sequence[ContainerPort] = (),
) -> ContainerInfo:
    labels = {CLUSTER_LABEL: cluster} if cluster else {}
    ports = list(extra_ports)
    if api_port is not None:
        ports.append(ContainerPort(private_port=6443, public_port=api_port, type="tcp"))
    return ContainerInfo(
        id=container_id,
        engine_id=connection.engine_id,
        engine_type=connection.engine_type,
        engine_name=connection.name,
        state=state,
        names=[f"/{container_id}"],
        labels=labels,
        ports=ports,
    )


def set_platform(monkeypatch: pytest.MonkeyPatch, name: str) -> None:
    monkeypatch.setattr(host_env, "is_linux", lambda: name == "linux")
    monkeypatch.setattr(host_env, "is_mac", lambda: name == "darwin")
    monkeypatch.setattr(host_env, "is_windows", lambda: name == "win32")


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def telemetry() -> RecordingTelemetry:
    return RecordingTelemetry()


@pytest.fixture
def engine() -> FakeContainerEngine:
    return FakeContainerEngine()


@pytest.fixture
def linux(monkeypatch):
    set_platform(monkeypatch, "linux")


@pytest.fixture
def mac(monkeypatch):
    set_platform(monkeypatch, "darwin")


@pytest.fixture
def windows(monkeypatch):
    set_platform(monkeypatch, "win32")
