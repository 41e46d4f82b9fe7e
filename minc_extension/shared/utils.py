"""Utility functions for subprocess management and cancellation."""

from __future__ import annotations

import asyncio
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

from minc_extension.shared import debug
from minc_extension.shared import env as host_env
from minc_extension.shared.errors import (
    CommandNotFoundError,
    ProcessCancelledError,
    ProcessExecError,
    UnsupportedPlatformError,
)


class ProcessLogger(Protocol):
    """Sink receiving the output of a running process line by line."""

    def log(self, message: str) -> None:
        ...

    def warn(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


class CancellationToken:
    """Cooperative cancellation signal forwarded to process calls."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_cancellation_requested(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class RunResult:
    """Outcome of a successful process call."""

    command: str
    stdout: str
    stderr: str


ProcessRunner = Callable[..., Awaitable[RunResult]]


def elevate(cmd: Sequence[str]) -> List[str]:
    """Wrap a command so that it runs with administrator privileges."""

    if host_env.is_linux():
        return ["pkexec", *cmd]
    if host_env.is_mac():
        script = shlex.join(cmd).replace("\\", "\\\\").replace('"', '\\"')
        return [
            "osascript",
            "-e",
            f'do shell script "{script}" with administrator privileges',
        ]
    if host_env.is_windows():

        def _quote(value: str) -> str:
            return "'" + value.replace("'", "''") + "'"

        start = f"Start-Process -FilePath {_quote(cmd[0])}"
        if len(cmd) > 1:
            # a single pre-quoted command line, not a PowerShell array
            start += " -ArgumentList " + _quote(subprocess.list2cmdline(cmd[1:]))
        start += " -Verb RunAs -Wait -PassThru"
        return [
            "powershell.exe",
            "-NoProfile",
            "-Command",
            f"$p = {start}; exit $p.ExitCode",
        ]
    raise UnsupportedPlatformError("Unable to elevate privileges on this platform")


async def _pump(
    stream: Optional[asyncio.StreamReader],
    chunks: List[str],
    sink: Optional[Callable[[str], None]],
) -> None:
    if stream is None:
        return
    while True:
        line = await stream.readline()
        if not line:
            return
        text = line.decode(errors="replace")
        chunks.append(text)
        if sink is not None:
            sink(text.rstrip("\r\n"))


async def _terminate(process: asyncio.subprocess.Process) -> None:
    """Stop a child process, escalating to kill when it lingers."""

    try:
        process.terminate()
        # Give it a moment to terminate gracefully
        try:
            await asyncio.wait_for(process.wait(), timeout=2.0)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
    except (ProcessLookupError, OSError):
        # Process might have already finished
        pass


async def run_subprocess_with_cancellation(
    cmd: List[str],
    *,
    logger: Optional[ProcessLogger] = None,
    token: Optional[CancellationToken] = None,
    env_vars: Optional[Dict[str, str]] = None,
) -> Dict[str, object]:
    """
    Run a subprocess with proper cancellation support.

    The subprocess is terminated when the surrounding task is cancelled or
    when ``token`` is cancelled.

    Args:
        cmd: Command to execute as a list of strings
        logger: Optional sink for stdout/stderr lines
        token: Optional cancellation token
        env_vars: Variables merged over the current environment

    Returns:
        Dictionary with returncode, stdout, and stderr

    Raises:
        ProcessCancelledError: If the token was cancelled
        asyncio.CancelledError: If the task is cancelled
    """
    process_env = None
    if env_vars:
        process_env = {**os.environ, **env_vars}

    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=process_env,
    )

    stdout: List[str] = []
    stderr: List[str] = []

    async def _communicate() -> None:
        await asyncio.gather(
            _pump(process.stdout, stdout, logger.log if logger else None),
            _pump(process.stderr, stderr, logger.error if logger else None),
        )
        await process.wait()

    communicate = asyncio.ensure_future(_communicate())
    waiters = {communicate}
    cancelled = None
    if token is not None:
        cancelled = asyncio.ensure_future(token.wait())
        waiters.add(cancelled)

    try:
        await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        communicate.cancel()
        await _terminate(process)
        raise
    finally:
        if cancelled is not None:
            cancelled.cancel()

    if not communicate.done():
        communicate.cancel()
        await _terminate(process)
        raise ProcessCancelledError(
            f"Execution of {cmd[0]} was cancelled",
            command=" ".join(cmd),
            stdout="".join(stdout),
            stderr="".join(stderr),
        )

    communicate.result()
    return {
        "returncode": process.returncode,
        "stdout": "".join(stdout),
        "stderr": "".join(stderr),
    }


async def exec_process(
    command: str,
    args: Optional[Sequence[str]] = None,
    *,
    logger: Optional[ProcessLogger] = None,
    token: Optional[CancellationToken] = None,
    env: Optional[Dict[str, str]] = None,
    is_admin: bool = False,
) -> RunResult:
    """Run ``command`` and return its output, raising on a non-zero exit."""

    cmd = [command, *(args or [])]
    if is_admin:
        cmd = elevate(cmd)
    command_line = " ".join(cmd)
    debug.log_request("exec", {"command": cmd, "admin": is_admin})

    try:
        result = await run_subprocess_with_cancellation(
            cmd, logger=logger, token=token, env_vars=env
        )
    except FileNotFoundError as exc:
        raise CommandNotFoundError(
            f"Command not found: {cmd[0]}", command=command_line
        ) from exc
    except PermissionError as exc:
        raise ProcessExecError(
            f"Command is not executable: {cmd[0]}", command=command_line
        ) from exc

    stdout = str(result["stdout"]).strip()
    stderr = str(result["stderr"]).strip()
    debug.log_response(
        "exec", {"command": cmd, "returncode": result["returncode"], "stdout": stdout}
    )
    if result["returncode"] != 0:
        raise ProcessExecError(
            f"Command execution failed with exit code {result['returncode']}: {stderr or command_line}",
            command=command_line,
            stdout=stdout,
            stderr=stderr,
            exit_code=result["returncode"],  # type: ignore[arg-type]
        )
    return RunResult(command=command_line, stdout=stdout, stderr=stderr)


