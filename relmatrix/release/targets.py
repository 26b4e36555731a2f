# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Release targets: where canonical artifacts get published.

A release is keyed by the trigger tag. The first entry to publish creates
it, and later entries reuse it and append their own asset. Nothing here
ever deletes a release. A failed run leaves whatever its successful entries
published, and the failed entries are re-run by hand.

Two implementations share the ReleaseTarget protocol:

    GitHubReleaseTarget     GitHub REST API over httpx
    DirectoryReleaseTarget  a local directory per tag (local runs, tests)

Both replace an existing asset of the same name. Publishing the same file
twice therefore gives the same result as publishing it once.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import Any, Optional, Protocol
from urllib.parse import quote

import httpx

from relmatrix.config.schema import ReleaseConfig
from relmatrix.logging.logger import get_logger
from relmatrix.pipeline.errors import PublicationError
from relmatrix.utils.filesystem import atomic_copy
from relmatrix.utils.paths import ensure_directory

_logger: logging.Logger = get_logger(__name__)

GITHUB_API_VERSION = "2022-11-28"


@dataclass(frozen=True)
class ReleaseHandle:
    """A release that exists on the target, ready for assets."""

    tag: str
    location: str
    release_id: Optional[int] = None


class ReleaseTarget(Protocol):
    def ensure_release(self, tag: str) -> ReleaseHandle:
        """Return the release for `tag`, creating it if needed."""
        ...

    def upload_asset(self, release: ReleaseHandle, artifact: Path) -> str:
        """Attach `artifact` to the release under its own file name."""
        ...

    def close(self) -> None:
        """Release any held connections."""
        ...


class DirectoryReleaseTarget:
    """Releases as directories: `<root>/<tag>/<asset>`."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def close(self) -> None:
        pass

    def ensure_release(self, tag: str) -> ReleaseHandle:
        release_dir = ensure_directory(self.root / tag)
        return ReleaseHandle(tag=tag, location=str(release_dir))

    def upload_asset(self, release: ReleaseHandle, artifact: Path) -> str:
        destination = Path(release.location) / artifact.name
        try:
            atomic_copy(artifact, destination)
        except OSError as err:
            raise PublicationError(
                f"Could not publish {artifact.name} to {release.location}: {err}"
            ) from err
        _logger.info(
            "Published asset",
            extra={"tag": release.tag, "asset": artifact.name, "location": str(destination)},
        )
        return str(destination)


class GitHubReleaseTarget:
    """
    Publishes to GitHub Releases.

    Creation races are expected. Every entry calls ensure_release, and when
    two create at once GitHub answers the loser with 422. The loser then
    just looks the release up again.
    """

    def __init__(
        self,
        repository: str,
        token: str,
        api_url: str = "https://api.github.com",
        upload_url: str = "https://uploads.github.com",
        timeout_seconds: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if repository.count("/") != 1:
            raise ValueError(f"Repository must be 'owner/name', got {repository!r}")
        self.repository = repository
        self.api_url = api_url.rstrip("/")
        self.upload_url = upload_url.rstrip("/")
        self._client = httpx.Client(
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
            },
            timeout=timeout_seconds,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "GitHubReleaseTarget":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._client.request(method, url, **kwargs)
        except httpx.HTTPError as err:
            raise PublicationError(f"{method} {url} failed: {err}") from err

    @staticmethod
    def _fail(action: str, response: httpx.Response) -> PublicationError:
        return PublicationError(
            f"{action} failed with HTTP {response.status_code}",
            diagnostics=response.text,
        )

    def _release_url(self) -> str:
        return f"{self.api_url}/repos/{self.repository}/releases"

    def _find_release(self, tag: str) -> Optional[ReleaseHandle]:
        response = self._request("GET", f"{self._release_url()}/tags/{quote(tag, safe='')}")
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise self._fail(f"Looking up release {tag}", response)
        return self._handle(tag, response.json())

    @staticmethod
    def _handle(tag: str, payload: dict[str, Any]) -> ReleaseHandle:
        return ReleaseHandle(
            tag=tag,
            location=str(payload.get("html_url", "")),
            release_id=int(payload["id"]),
        )

    def ensure_release(self, tag: str) -> ReleaseHandle:
        existing = self._find_release(tag)
        if existing is not None:
            _logger.debug("Reusing release", extra={"tag": tag, "release_id": existing.release_id})
            return existing

        response = self._request(
            "POST",
            self._release_url(),
            json={"tag_name": tag, "name": tag},
        )
        if response.status_code == 201:
            handle = self._handle(tag, response.json())
            _logger.info("Created release", extra={"tag": tag, "release_id": handle.release_id})
            return handle

        if response.status_code == 422:
            # Another entry created it between our lookup and our create.
            raced = self._find_release(tag)
            if raced is not None:
                return raced

        raise self._fail(f"Creating release {tag}", response)

    def _existing_assets(self, release_id: int) -> dict[str, int]:
        assets: dict[str, int] = {}
        page = 1
        while True:
            response = self._request(
                "GET",
                f"{self._release_url()}/{release_id}/assets",
                params={"per_page": 100, "page": page},
            )
            if response.status_code != 200:
                raise self._fail("Listing release assets", response)
            batch = response.json()
            for asset in batch:
                assets[str(asset["name"])] = int(asset["id"])
            if len(batch) < 100:
                return assets
            page += 1

    def upload_asset(self, release: ReleaseHandle, artifact: Path) -> str:
        if release.release_id is None:
            raise PublicationError(f"Release for {release.tag} has no id")

        existing_id = self._existing_assets(release.release_id).get(artifact.name)
        if existing_id is not None:
            response = self._request(
                "DELETE", f"{self._release_url()}/assets/{existing_id}"
            )
            if response.status_code not in (204, 404):
                raise self._fail(f"Replacing asset {artifact.name}", response)
            _logger.info(
                "Replacing existing asset",
                extra={"tag": release.tag, "asset": artifact.name},
            )

        response = self._request(
            "POST",
            f"{self.upload_url}/repos/{self.repository}/releases/{release.release_id}/assets",
            params={"name": artifact.name},
            headers={"Content-Type": "application/octet-stream"},
            content=artifact.read_bytes(),
        )
        if response.status_code != 201:
            raise self._fail(f"Uploading {artifact.name}", response)

        url = str(response.json().get("browser_download_url", ""))
        _logger.info(
            "Published asset",
            extra={"tag": release.tag, "asset": artifact.name, "url": url},
        )
        return url


def build_release_target(
    config: ReleaseConfig,
    base_dir: Path,
    transport: Optional[httpx.BaseTransport] = None,
) -> ReleaseTarget:
    """
    Construct the configured release target.

    The GitHub token is read from the environment variable named by
    `token_env`. The repository comes from config, or from
    $GITHUB_REPOSITORY, which Actions sets on every runner.

    Raises:
        PublicationError: If the GitHub provider is missing its token, or its
            repository is missing or not `owner/name`.
    """
    if config.provider == "directory":
        return DirectoryReleaseTarget(base_dir / config.directory)

    repository = config.repository or os.environ.get("GITHUB_REPOSITORY")
    if not repository:
        raise PublicationError(
            "No release repository configured: set pipeline.release.repository "
            "or GITHUB_REPOSITORY"
        )
    if repository.count("/") != 1 or not all(repository.split("/")):
        raise PublicationError(f"Release repository must be 'owner/name', got '{repository}'")
    token = os.environ.get(config.token_env)
    if not token:
        raise PublicationError(f"Release token not found in ${config.token_env}")

    return GitHubReleaseTarget(
        repository=repository,
        token=token,
        api_url=config.api_url,
        upload_url=config.upload_url,
        timeout_seconds=config.timeout_seconds,
        transport=transport,
    )
