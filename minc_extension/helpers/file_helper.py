"""Locate, install and delete the minc binary on the host."""

from __future__ import annotations

import errno
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from minc_extension.shared import env as host_env
from minc_extension.shared.errors import PrivilegeEscalationError, ProcessExecError, UnsupportedPlatformError
from minc_extension.shared.utils import ProcessRunner, exec_process

_logger = logging.getLogger(__name__)

MACOS_EXTRA_PATH = "/opt/podman/bin:/usr/local/bin:/opt/homebrew/bin:/opt/local/bin"
LOCAL_BIN_DIR = "/usr/local/bin"
VERSION_PREFIX = "version: "


@dataclass
class BinaryInfo:
    version: str
    path: str


class FileHelper:
    """File operations around the CLI binary: probing, copying, deleting."""

    def __init__(self, runner: ProcessRunner = exec_process) -> None:
        self._run = runner

    def get_minc_path(self) -> Optional[str]:
        """PATH used to look the binary up; on macOS the usual install dirs are appended."""

        path = os.environ.get("PATH")
        if host_env.is_mac():
            if not path:
                return MACOS_EXTRA_PATH
            return f"{path}:{MACOS_EXTRA_PATH}"
        return path

    async def get_minc_binary_info(self, executable: str) -> BinaryInfo:
        """Run ``<executable> version`` and return the parsed version and real path."""

        if os.path.isabs(executable):
            result = await self._run(executable, ["version"])
            return BinaryInfo(version=self.parse_minc_version(result.stdout), path=executable)

        result = await self._run(executable, ["version"], env={"PATH": self.get_minc_path() or ""})
        return BinaryInfo(
            version=self.parse_minc_version(result.stdout),
            path=await self.where_binary(executable),
        )

    @staticmethod
    def parse_minc_version(raw: str) -> str:
        if raw.startswith(VERSION_PREFIX):
            return raw[len(VERSION_PREFIX):]
        raise ValueError("malformed minc output")

    async def where_binary(self, executable: str) -> str:
        """Resolve an executable name to its full path, or return it unchanged."""

        env = {"PATH": self.get_minc_path() or ""}
        if host_env.is_linux() or host_env.is_mac():
            try:
                result = await self._run("which", [executable], env=env)
                return result.stdout
            except ProcessExecError as exc:
                _logger.warning("Error getting full path of %s: %s", executable, exc)
        elif host_env.is_windows():
            try:
                result = await self._run("where.exe", [executable], env=env)
                lines = result.stdout.splitlines()
                return lines[0].strip() if lines else ""
            except ProcessExecError as exc:
                _logger.warning("Error getting full path of %s: %s", executable, exc)
        return executable

    @staticmethod
    def get_system_binary_path(binary_name: str) -> str:
        if host_env.is_windows():
            name = binary_name if binary_name.endswith(".exe") else f"{binary_name}.exe"
            return str(Path.home() / "AppData" / "Local" / "Microsoft" / "WindowsApps" / name)
        if host_env.is_linux() or host_env.is_mac():
            return os.path.join(LOCAL_BIN_DIR, binary_name)
        raise UnsupportedPlatformError(f"unsupported platform: {sys.platform}.")

    async def install_binary_to_system(self, binary_path: str, binary_name: str) -> str:
        """Copy ``binary_path`` to the system-wide location with admin rights."""

        if host_env.is_linux() or host_env.is_mac():
            try:
                await self._run("chmod", ["+x", binary_path])
            except ProcessExecError as exc:
                raise PrivilegeEscalationError(f"Error making binary executable: {exc}") from exc

        destination = self.get_system_binary_path(binary_name)
        if host_env.is_windows():
            command, args = "cmd.exe", ["/c", "copy", "/Y", binary_path, destination]
        else:
            command, args = "cp", [binary_path, destination]

        try:
            await self._run(command, args, is_admin=True)
        except ProcessExecError as exc:
            _logger.error("Failed to install '%s' binary: %s", binary_name, exc)
            raise PrivilegeEscalationError(f"Failed to install '{binary_name}' binary: {exc}") from exc
        return destination

    @staticmethod
    def remove_version_prefix(version: str) -> str:
        """Drop the first ``v`` and surrounding whitespace: ``v1.2.3`` -> ``1.2.3``."""

        return version.replace("v", "", 1).strip()

    async def delete_file(self, file_path: str) -> None:
        if not file_path or not os.path.exists(file_path):
            return
        try:
            os.unlink(file_path)
        except OSError as exc:
            if exc.errno in (errno.EACCES, errno.EPERM):
                await self.delete_file_as_admin(file_path)
            else:
                raise

    def _delete_command(self, file_path: str) -> tuple[str, list[str]]:
        if host_env.is_windows():
            return "cmd.exe", ["/c", "del", "/F", file_path]
        return "rm", [file_path]

    async def delete_file_as_admin(self, file_path: str) -> None:
        command, args = self._delete_command(file_path)
        try:
            await self._run(command, args, is_admin=True)
        except ProcessExecError as exc:
            _logger.error("Failed to uninstall '%s': %s", file_path, exc)
            raise

    async def delete_executable_as_admin(self, file_path: str) -> None:
        """Delete a system binary with admin rights, if it exists."""

        check = "where.exe" if host_env.is_windows() else "which"
        found = ""
        try:
            result = await self._run(check, [file_path])
            found = result.stdout
        except ProcessExecError as exc:
            _logger.info("%s not found: %s", file_path, exc.stderr or exc)

        if not found:
            return
        await self.delete_file_as_admin(file_path)
