# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Artifact collector and renamer.

cargo calls the executable the same thing on every platform. The only
difference is whether it sits under target/release/ or target/<triple>/release/.
Before publication each entry moves its executable to its canonical name
under the shared output root:

    target/x86_64-unknown-linux-musl/release/maxtime -> target/maxtime-linux
    target/release/maxtime                          -> target/maxtime-mac
    target/release/maxtime.exe                      -> target/maxtime-windows.exe

This is a move, not a copy. Afterwards the canonical file exists and the
original path is empty. If the original isn't there, the entry's build
flags and its primary_output_path disagree. The entry fails here instead of
publishing nothing.
"""

import shutil
from pathlib import Path

from relmatrix.config.schema import PlatformEntry
from relmatrix.logging.logger import get_logger
from relmatrix.pipeline.errors import PathContractError
from relmatrix.utils.paths import ensure_directory, resolve_under

logger = get_logger(__name__)


def canonical_path(entry: PlatformEntry, output_root: Path) -> Path:
    """Where the entry's canonical artifact lives."""
    return output_root / entry.canonical_output_name


def collect(entry: PlatformEntry, source_dir: Path, output_root: Path) -> Path:
    """
    Move the build output to its canonical name.

    Returns:
        Path of the canonical artifact.

    Raises:
        PathContractError: If the build output is missing or isn't a regular
            file. Nothing is created at the canonical path in that case.
    """
    try:
        source = resolve_under(source_dir, entry.primary_output_path)
    except ValueError as err:
        raise PathContractError(str(err)) from err

    if not source.is_file():
        raise PathContractError(
            f"Build output for '{entry.platform_id}' not found at {entry.primary_output_path}. "
            f"Check that toolchain_extra_flags and primary_output_path agree."
        )

    destination = canonical_path(entry, ensure_directory(output_root))
    if destination.resolve() == source:
        raise PathContractError(
            f"Entry '{entry.platform_id}' renames {entry.primary_output_path} onto itself"
        )

    if destination.exists():
        logger.warning(
            "Replacing stale canonical artifact",
            extra={"platform_id": entry.platform_id, "path": str(destination)},
        )
        destination.unlink()

    shutil.move(str(source), str(destination))

    if source.exists() or not destination.is_file():
        raise PathContractError(
            f"Rename of {source} to {destination} did not complete for '{entry.platform_id}'"
        )

    logger.info(
        "Collected artifact",
        extra={
            "platform_id": entry.platform_id,
            "source": entry.primary_output_path,
            "canonical": str(destination),
        },
    )
    return destination
