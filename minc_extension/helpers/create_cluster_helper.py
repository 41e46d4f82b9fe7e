"""Run `minc create` from the parameters of a creation request."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Mapping, Optional

from minc_extension.shared.errors import ClusterCreationError
from minc_extension.shared.telemetry import TelemetryLogger
from minc_extension.shared.utils import CancellationToken, ProcessLogger, ProcessRunner, exec_process

_logger = logging.getLogger(__name__)

HTTP_PORT_KEY = "microshift.cluster.creation.http.port"
HTTPS_PORT_KEY = "microshift.cluster.creation.https.port"
HTTP_PORT_ALIAS = "http-port"
HTTPS_PORT_ALIAS = "https-port"
DEFAULT_HTTP_PORT = 80
DEFAULT_HTTPS_PORT = 443


def read_port(params: Mapping[str, Any], key: str, alias: str, default: int) -> int:
    """Return the port stored under ``key`` (or ``alias``), ``default`` when unusable."""

    value = params.get(key)
    if value is None:
        value = params.get(alias)
    # bool is an int subclass
    if not value or isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return default
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        _logger.warning("Ignoring non numeric value %r for %s", value, key)
        return default


class CreateClusterHelper:
    def __init__(self, telemetry: TelemetryLogger, runner: ProcessRunner = exec_process) -> None:
        self.telemetry = telemetry
        self._run = runner

    async def create(
        self,
        cli_path: str,
        params: Mapping[str, Any],
        logger: Optional[ProcessLogger] = None,
        token: Optional[CancellationToken] = None,
    ) -> None:
        """Create a cluster with ``cli_path``; always reports a ``createCluster`` usage event."""

        http_port = read_port(params, HTTP_PORT_KEY, HTTP_PORT_ALIAS, DEFAULT_HTTP_PORT)
        https_port = read_port(params, HTTPS_PORT_KEY, HTTPS_PORT_ALIAS, DEFAULT_HTTPS_PORT)

        telemetry_options: Dict[str, Any] = {}
        start = time.perf_counter()
        try:
            await self._run(
                cli_path,
                ["create", "--http-port", str(http_port), "--https-port", str(https_port)],
                logger=logger,
                token=token,
            )
        except Exception as exc:
            telemetry_options["error"] = exc
            message = getattr(exc, "message", None) or str(exc)
            raise ClusterCreationError(f"Failed to create minc cluster. {message}") from exc
        finally:
            telemetry_options["duration"] = (time.perf_counter() - start) * 1000
            self.telemetry.log_usage("createCluster", telemetry_options)
