# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Publication coordinator.

Two sub-operations per entry:

    pool upload     append the entry's packages to the shared pool
    release publish attach the canonical artifact to the tag's release

The two are independent. Packages go to the pool first, whatever happens
to the release publish after it.

Release matching is strict. If the canonical artifact isn't on disk, or has
the wrong name, publish fails before anything reaches the release. It never
skips, and it never substitutes another file. A release quietly missing one
platform is worse than a run that goes red.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from relmatrix.config.schema import PlatformEntry
from relmatrix.logging.logger import get_logger
from relmatrix.matrix.trigger import TriggerEvent
from relmatrix.pipeline.errors import PublicationError, PublicationMismatchError
from relmatrix.release.pool import ArtifactPool
from relmatrix.release.targets import ReleaseTarget
from relmatrix.utils.hashing import compute_sha256

logger = get_logger(__name__)


@dataclass(frozen=True)
class PublishResult:
    asset_name: str
    asset_location: str
    sha256: str
    pooled: tuple[str, ...]


def publish(
    entry: PlatformEntry,
    canonical_artifact: Path,
    package_files: Sequence[Path],
    trigger: TriggerEvent,
    pool: ArtifactPool,
    target: ReleaseTarget,
) -> PublishResult:
    """
    Pool the packages, then publish the canonical artifact to the release.

    The packages are pooled even when the canonical artifact turns out to be
    missing; only the release publish is gated on it.

    Raises:
        PublicationMismatchError: If the canonical artifact is missing, or
            its file name isn't the entry's canonical_output_name.
        PublicationError: If the pool or the release target fails.
    """
    pooled: list[str] = []
    for package in package_files:
        try:
            pooled.append(pool.append(package).name)
        except OSError as err:
            raise PublicationError(
                f"Could not add {package.name} to pool '{pool.name}': {err}"
            ) from err

    if canonical_artifact.name != entry.canonical_output_name:
        raise PublicationMismatchError(
            f"Refusing to publish {canonical_artifact.name} for '{entry.platform_id}': "
            f"expected {entry.canonical_output_name}"
        )
    if not canonical_artifact.is_file():
        raise PublicationMismatchError(
            f"Canonical artifact for '{entry.platform_id}' not found at {canonical_artifact}"
        )

    sha256 = compute_sha256(canonical_artifact)
    release = target.ensure_release(trigger.tag)
    location = target.upload_asset(release, canonical_artifact)

    logger.info(
        "Entry published",
        extra={
            "platform_id": entry.platform_id,
            "tag": trigger.tag,
            "asset": canonical_artifact.name,
            "sha256": sha256,
            "pooled": pooled,
        },
    )
    return PublishResult(
        asset_name=canonical_artifact.name,
        asset_location=location,
        sha256=sha256,
        pooled=tuple(pooled),
    )
