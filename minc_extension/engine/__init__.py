"""Container engine access."""

from .container_engine import (
    ContainerEngine,
    ContainerEngineEvent,
    ContainerInfo,
    ContainerPort,
    EngineConnection,
    EngineConnectionChange,
    detect_engine_connections,
)

__all__ = [
    "ContainerEngine",
    "ContainerEngineEvent",
    "ContainerInfo",
    "ContainerPort",
    "EngineConnection",
    "EngineConnectionChange",
    "detect_engine_connections",
]
