"""State of the minc CLI and the transitions between install, update and uninstall.

The functions here are pure: they take a :class:`CliToolState` and return the
next one, plus a :class:`ReleasePlan` when the caller has to download and
install something. :class:`~minc_extension.managers.cli_tool_manager.CliToolManager`
runs the plans and commits the resulting state.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from minc_extension.helpers.github_helper import ReleaseArtifact
from minc_extension.shared.cli_tools import InstallationSource
from minc_extension.shared.errors import (
    AlreadyInstalledError,
    NoReleaseSelectedError,
    NotInstalledError,
    OperationInProgressError,
)

CLI_NAME = "minc"


class CliToolStatus(str, Enum):
    NOT_INSTALLED = "not-installed"
    INSTALLED = "installed"
    UPDATE_AVAILABLE = "update-available"
    INSTALLING = "installing"
    UPDATING = "updating"
    UNINSTALLING = "uninstalling"


class Operation(str, Enum):
    INSTALL = "install"
    UPDATE = "update"
    UNINSTALL = "uninstall"


@dataclass(frozen=True)
class BinaryRecord:
    """The binary in use: where it is, its version and who installed it."""

    path: str
    version: str
    installation_source: InstallationSource


@dataclass(frozen=True)
class ReleasePlan:
    """A release picked for install or update, with its normalized version."""

    release: ReleaseArtifact
    version: str


@dataclass(frozen=True)
class CliToolState:
    binary: Optional[BinaryRecord] = None
    latest: Optional[ReleasePlan] = None
    pending_update: Optional[ReleasePlan] = None
    pending_install: Optional[ReleasePlan] = None
    operation: Optional[Operation] = None

    @property
    def path(self) -> Optional[str]:
        return self.binary.path if self.binary else None

    @property
    def version(self) -> Optional[str]:
        return self.binary.version if self.binary else None

    @property
    def installation_source(self) -> Optional[InstallationSource]:
        return self.binary.installation_source if self.binary else None

    @property
    def latest_version(self) -> Optional[str]:
        return self.latest.version if self.latest else None

    @property
    def available_version(self) -> Optional[str]:
        """Latest known version when it differs from the installed one."""

        if self.latest_version != self.version:
            return self.latest_version
        return None

    @property
    def status(self) -> CliToolStatus:
        if self.operation is Operation.INSTALL:
            return CliToolStatus.INSTALLING
        if self.operation is Operation.UPDATE:
            return CliToolStatus.UPDATING
        if self.operation is Operation.UNINSTALL:
            return CliToolStatus.UNINSTALLING
        if self.binary is None:
            return CliToolStatus.NOT_INSTALLED
        if self.available_version:
            return CliToolStatus.UPDATE_AVAILABLE
        return CliToolStatus.INSTALLED


def detected(state: CliToolState, binary: Optional[BinaryRecord]) -> CliToolState:
    return replace(state, binary=binary)


def record_latest(state: CliToolState, latest: Optional[ReleasePlan]) -> CliToolState:
    return replace(state, latest=latest)


def select_update(state: CliToolState, plan: ReleasePlan) -> CliToolState:
    return replace(state, pending_update=plan)


def select_install(state: CliToolState, plan: ReleasePlan) -> CliToolState:
    return replace(state, pending_install=plan)


def _ensure_idle(state: CliToolState) -> None:
    if state.operation is not None:
        raise OperationInProgressError(f"Cannot run {CLI_NAME} operation. {state.operation.value} in progress.")


def plan_update(state: CliToolState) -> Tuple[CliToolState, ReleasePlan]:
    """Pick the release to update to: the pending selection, else the latest one."""

    _ensure_idle(state)
    if state.binary is None:
        raise NotInstalledError(f"Cannot update {CLI_NAME}. No cli tool installed.")
    plan = state.pending_update or state.latest
    if plan is None:
        raise NoReleaseSelectedError(
            f"Cannot update {state.path} version {state.version}. No release selected."
        )
    return replace(state, operation=Operation.UPDATE), plan


def plan_install(state: CliToolState) -> Tuple[CliToolState, ReleasePlan]:
    _ensure_idle(state)
    if state.binary is not None:
        raise AlreadyInstalledError(
            f"Cannot install {CLI_NAME}. Version {state.version} in {state.path} is already installed."
        )
    if state.pending_install is None:
        raise NoReleaseSelectedError(f"Cannot install {CLI_NAME}. No release selected.")
    return replace(state, operation=Operation.INSTALL), state.pending_install


def plan_uninstall(state: CliToolState) -> CliToolState:
    _ensure_idle(state)
    if state.binary is None:
        raise NotInstalledError(f"Cannot uninstall {CLI_NAME}. No version detected.")
    return replace(state, operation=Operation.UNINSTALL)


def complete_update(state: CliToolState, plan: ReleasePlan, path: str) -> CliToolState:
    return replace(
        state,
        binary=BinaryRecord(path=path, version=plan.version, installation_source=InstallationSource.EXTENSION),
        pending_update=None,
        operation=None,
    )


def complete_install(state: CliToolState, plan: ReleasePlan, path: str) -> CliToolState:
    return replace(
        state,
        binary=BinaryRecord(path=path, version=plan.version, installation_source=InstallationSource.EXTENSION),
        pending_install=None,
        operation=None,
    )


def complete_uninstall(state: CliToolState) -> CliToolState:
    return replace(state, binary=None, operation=None)


def abort_operation(state: CliToolState) -> CliToolState:
    """Leave the running operation; the binary record and selections stay as they were."""

    return replace(state, operation=None)


def installed(state: CliToolState, plan: ReleasePlan, path: str) -> CliToolState:
    """Record a binary installed outside of the install/update flow."""

    return replace(
        state,
        binary=BinaryRecord(path=path, version=plan.version, installation_source=InstallationSource.EXTENSION),
    )
