# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared artifact pool.

Every entry of a run appends its wheels to one named pool (`wheels` by
default). Entries never read or delete from it, and wheel file names already
encode platform and architecture, so concurrent appends from sibling entries
don't collide. Each file lands via an atomic rename, so nobody ever sees a
partial wheel.

Appending is idempotent by file name. Re-appending identical bytes is a
no-op. Different bytes under the same name replace the old file, and a
warning is logged because it usually means a rebuilt wheel.
"""

import logging
from pathlib import Path

from relmatrix.logging.logger import get_logger
from relmatrix.utils.filesystem import atomic_copy
from relmatrix.utils.hashing import compute_sha256
from relmatrix.utils.paths import ensure_directory

_logger: logging.Logger = get_logger(__name__)


class ArtifactPool:
    """A named, append-only directory of package artifacts."""

    def __init__(self, root: Path, name: str) -> None:
        if not name or "/" in name or "\\" in name or name in {".", ".."}:
            raise ValueError(f"Invalid pool name: {name!r}")
        self.root = root
        self.name = name

    @property
    def directory(self) -> Path:
        return self.root / self.name

    def append(self, artifact: Path) -> Path:
        """
        Add one file to the pool.

        Returns:
            Path of the pooled copy.

        Raises:
            FileNotFoundError: If `artifact` doesn't exist.
        """
        if not artifact.is_file():
            raise FileNotFoundError(f"Cannot pool missing artifact: {artifact}")

        destination = ensure_directory(self.directory) / artifact.name

        if destination.is_file():
            if compute_sha256(destination) == compute_sha256(artifact):
                _logger.debug(
                    "Artifact already pooled",
                    extra={"pool": self.name, "artifact": artifact.name},
                )
                return destination
            _logger.warning(
                "Replacing pooled artifact with different content",
                extra={"pool": self.name, "artifact": artifact.name},
            )

        atomic_copy(artifact, destination)
        _logger.info("Pooled artifact", extra={"pool": self.name, "artifact": artifact.name})
        return destination

    def list_artifacts(self) -> list[str]:
        """Names of everything in the pool, sorted."""
        if not self.directory.is_dir():
            return []
        return sorted(
            path.name
            for path in self.directory.iterdir()
            if path.is_file() and not path.name.startswith(".relmatrix_tmp_")
        )
