"""GitHub release index access for the minc CLI."""

from __future__ import annotations

import logging
import os
import platform
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiohttp

from minc_extension.shared import debug
from minc_extension.shared import env as host_env
from minc_extension.shared.errors import DownloadError, NoVersionSelectedError, ReleaseNotFoundError
from minc_extension.shared.prompt import UserPrompt

_logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
GITHUB_OWNER = "minc-org"
GITHUB_REPOSITORY = "minc"
MAX_RELEASES = 5
SELECT_VERSION_PLACEHOLDER = "Select minc version to download"


@dataclass
class ReleaseArtifact:
    """A published (non pre-release) minc release."""

    label: str
    tag: str
    id: int


def current_os() -> str:
    """Platform name as used in asset names (``win32``, ``darwin``, ``linux``)."""

    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


def current_arch() -> str:
    machine = platform.machine().lower()
    if machine in ("x86_64", "amd64"):
        return "x64"
    if machine in ("aarch64", "arm64"):
        return "arm64"
    return machine


def asset_name(operating_system: str, arch: str) -> str:
    if operating_system == "win32":
        return "minc.exe"
    selected_arch = "amd64" if arch == "x64" else arch
    return f"minc_{operating_system}_{selected_arch}"


class GitHubHelper:
    """Lists releases, resolves platform assets and downloads them to storage."""

    def __init__(
        self,
        storage_path: Path,
        prompt: UserPrompt,
        owner: str = GITHUB_OWNER,
        repository: str = GITHUB_REPOSITORY,
        token: Optional[str] = None,
    ) -> None:
        self.storage_path = Path(storage_path)
        self.prompt = prompt
        self.owner = owner
        self.repository = repository
        self.token = token

    def _headers(self, accept: str = "application/vnd.github+json") -> Dict[str, str]:
        headers = {"Accept": accept, "User-Agent": "minc-extension"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _get_json(self, path: str) -> Any:
        url = f"{GITHUB_API_URL}{path}"
        debug.log_request("github", {"url": url})
        async with aiohttp.ClientSession(headers=self._headers()) as session:
            async with session.get(url) as response:
                response.raise_for_status()
                payload = await response.json()
        debug.log_response("github", {"url": url, "items": len(payload) if isinstance(payload, list) else 1})
        return payload

    async def _get_bytes(self, path: str) -> bytes:
        url = f"{GITHUB_API_URL}{path}"
        debug.log_request("github", {"url": url, "accept": "application/octet-stream"})
        async with aiohttp.ClientSession(headers=self._headers("application/octet-stream")) as session:
            async with session.get(url) as response:
                response.raise_for_status()
                data = await response.read()
        debug.log_response("github", {"url": url, "bytes": len(data)})
        return data

    async def grab_latest_releases_metadata(self) -> List[ReleaseArtifact]:
        """Return up to five most recent non pre-release releases, newest first."""

        releases = await self._get_json(f"/repos/{self.owner}/{self.repository}/releases")
        published = [release for release in releases if not release.get("prerelease")]
        return [
            ReleaseArtifact(
                label=release.get("name") or release["tag_name"],
                tag=release["tag_name"],
                id=release["id"],
            )
            for release in published[:MAX_RELEASES]
        ]

    async def get_latest_version_asset(self) -> ReleaseArtifact:
        releases = await self.grab_latest_releases_metadata()
        if not releases:
            raise ReleaseNotFoundError(f"No release found for {self.owner}/{self.repository}")
        return releases[0]

    async def prompt_user_for_version(self, current_tag: Optional[str] = None) -> ReleaseArtifact:
        """Ask which release to use; the installed one (``current_tag`` without ``v``) is not offered."""

        releases = await self.grab_latest_releases_metadata()
        if current_tag:
            releases = [release for release in releases if release.tag[1:] != current_tag]

        selected = await self.prompt.show_quick_pick(releases, SELECT_VERSION_PLACEHOLDER)
        if selected is None:
            raise NoVersionSelectedError("No version selected")
        return selected

    async def get_release_asset_id(self, release_id: int, operating_system: str, arch: str) -> int:
        assets = await self._get_json(f"/repos/{self.owner}/{self.repository}/releases/{release_id}/assets")
        wanted = asset_name(operating_system, arch)
        for asset in assets:
            if asset.get("name") == wanted:
                return asset["id"]
        raise ReleaseNotFoundError(f"No asset found for {operating_system} and {arch}")

    def get_cli_storage_path(self) -> str:
        extension = ".exe" if host_env.is_windows() else ""
        return str((self.storage_path / "bin" / f"minc{extension}").resolve())

    async def download(self, release: ReleaseArtifact) -> str:
        """Download the platform asset of ``release`` into storage and return its path."""

        asset_id = await self.get_release_asset_id(release.id, current_os(), current_arch())
        destination = self.get_cli_storage_path()
        await self.download_release_asset(asset_id, destination)
        _logger.info("Downloaded minc %s to %s", release.tag, destination)
        return destination

    async def download_release_asset(self, asset_id: int, destination: str) -> None:
        data = await self._get_bytes(f"/repos/{self.owner}/{self.repository}/releases/assets/{asset_id}")
        try:
            Path(destination).parent.mkdir(parents=True, exist_ok=True)
            with open(destination, "wb") as f:
                f.write(data)
            if host_env.is_linux() or host_env.is_mac():
                os.chmod(destination, 0o755)
        except OSError as exc:
            raise DownloadError(f"Unable to write {destination}: {exc.strerror or exc}") from exc
