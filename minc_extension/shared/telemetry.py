"""Usage telemetry sink."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

from minc_extension.shared.debug import normalise


class TelemetryLogger(Protocol):
    """Receives named usage events with free-form properties."""

    def log_usage(self, event_name: str, data: Optional[Dict[str, Any]] = None) -> None:
        ...


class LoggingTelemetryLogger:
    """Telemetry sink writing one structured log record per event."""

    def __init__(self, enabled: bool = True, logger_name: str = "minc_extension.telemetry") -> None:
        self.enabled = enabled
        self._logger = logging.getLogger(logger_name)

    def log_usage(self, event_name: str, data: Optional[Dict[str, Any]] = None) -> None:
        if not self.enabled:
            return
        payload = dict(data or {})
        if isinstance(payload.get("error"), BaseException):
            payload["error"] = str(payload["error"])
        self._logger.info("%s %s", event_name, normalise(payload))
