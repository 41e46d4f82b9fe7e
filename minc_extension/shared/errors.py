"""Shared extension errors."""

from typing import Optional


class MincError(RuntimeError):
    """Base class for errors surfaced to the host."""

    @property
    def message(self) -> str:
        return str(self)


class CliNotInstalledError(MincError):
    """Raised when an operation needs the minc CLI and none is installed."""


class NoReleaseSelectedError(MincError):
    """Raised when an install or update has no release to work with."""


class AlreadyInstalledError(MincError):
    """Raised when installing over a recorded binary."""


class NotInstalledError(MincError):
    """Raised when uninstalling or updating with nothing recorded."""


class ReleaseNotFoundError(MincError):
    """Raised when the release index has no usable release or asset."""


class NoVersionSelectedError(MincError):
    """Raised when the user dismisses the version prompt."""


class UnsupportedPlatformError(MincError):
    """Raised on an operating system the extension cannot install to."""


class ContainerEngineError(MincError):
    """Raised when a container engine API call fails."""


class ClusterCreationError(MincError):
    """Raised when `minc create` fails."""


class PrivilegeEscalationError(MincError):
    """Raised when a privileged install or delete is denied or fails."""


class ProcessExecError(MincError):
    """Raised when an external process exits with a non-zero status."""

    def __init__(
        self,
        message: str,
        *,
        command: str = "",
        stdout: str = "",
        stderr: str = "",
        exit_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.command = command
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code


class ProcessCancelledError(ProcessExecError):
    """Raised when a cancellation token stops a running process."""


class OperationInProgressError(MincError):
    """Raised when an install, update or uninstall is already running."""


class CommandNotFoundError(ProcessExecError):
    """Raised when the executable of a process call does not exist."""


class ConfigError(MincError):
    """Raised when the configuration file or an engine entry is invalid."""


class DownloadError(MincError):
    """Raised when a release asset cannot be written to storage."""
