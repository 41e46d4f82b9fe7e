"""Runtime-configurable debug logging utilities."""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Dict

_logger = logging.getLogger("minc_extension")
_state_lock = threading.Lock()
_enabled = False

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
SECRET_KEYS = {"authorization", "token", "password"}


def configure_root(level: int = logging.INFO) -> None:
    """Ensure standard logging configuration is present."""

    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    _logger.setLevel(level)
    # aiohttp is chatty at debug level
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def is_enabled() -> bool:
    """Return whether verbose debug logging is active."""

    with _state_lock:
        return _enabled


def enable() -> None:
    """Enable verbose logging globally."""

    global _enabled
    with _state_lock:
        _enabled = True
    _logger.setLevel(logging.DEBUG)
    _logger.debug("Verbose debug mode enabled")


def redact(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of ``payload`` with credential-like values masked."""

    redacted: Dict[str, Any] = {}
    for key, value in payload.items():
        if key.lower() in SECRET_KEYS and value:
            redacted[key] = "***"
        elif isinstance(value, dict):
            redacted[key] = redact(value)
        else:
            redacted[key] = value
    return redacted


def normalise(payload: Dict[str, Any]) -> str:
    try:
        return json.dumps(redact(payload), separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return str(payload)


def _log(direction: str, context: str, payload: Dict[str, Any]) -> None:
    if not is_enabled():
        return
    logging.getLogger(f"minc_extension.{direction}").debug(
        "%s %s: %s", context, direction, normalise(payload)
    )


def log_request(context: str, payload: Dict[str, Any]) -> None:
    """Debug-log a process call or API request (GitHub, container engine)."""

    _log("request", context, payload)


def log_response(context: str, payload: Dict[str, Any]) -> None:
    _log("response", context, payload)
