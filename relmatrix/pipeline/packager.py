# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Package builder.

Builds the wheel with maturin from the same source tree. maturin runs its
own cargo build internally, so this stage never looks at the executable the
build stage produced. It gets the entry's toolchain_extra_flags verbatim,
which keeps the wheel and the executable on the same target.

maturin names its wheels by platform and architecture, so wheels from
different entries can share one pool without renaming. On disk each entry
writes into its own `<output_dir>/<platform_id>` through maturin's `--out`,
so entries running side by side in one tree never pick up each other's wheels.
"""

from pathlib import Path
from typing import Mapping, Optional

from relmatrix.config.schema import PackagerConfig, PlatformEntry
from relmatrix.logging.logger import get_logger
from relmatrix.pipeline.commands import CommandRunner, run_command
from relmatrix.pipeline.errors import PackagingError
from relmatrix.utils.paths import resolve_under

logger = get_logger(__name__)


def package_output_dir(packager: PackagerConfig, entry: PlatformEntry) -> str:
    """The entry's own wheel directory, relative to the source tree."""
    return f"{packager.output_dir.rstrip('/')}/{entry.platform_id}"


def package_command(packager: PackagerConfig, entry: PlatformEntry) -> list[str]:
    """The exact package-build argv for an entry."""
    return [
        packager.program,
        *packager.build_args,
        *entry.toolchain_extra_flags,
        "--out",
        package_output_dir(packager, entry),
    ]


def find_packages(
    packager: PackagerConfig, source_dir: Path, entry: PlatformEntry
) -> list[Path]:
    """Every file in the entry's package directory matching artifact_glob, sorted."""
    output_dir = resolve_under(source_dir, package_output_dir(packager, entry))
    if not output_dir.is_dir():
        return []
    return sorted(path for path in output_dir.glob(packager.artifact_glob) if path.is_file())


def packages_for_tag(packages: list[Path], tag: str) -> list[Path]:
    """
    Keep the wheels whose version field matches the release tag.

    Wheel names are `{name}-{version}-...`, and the tag is taken as the
    version with any leading `v` dropped. A `-` in the tag is compared as `_`,
    the way wheel file names escape it.
    """
    version = tag[1:] if tag[:1] in {"v", "V"} else tag
    version = version.replace("-", "_")
    return [path for path in packages if path.name.split("-")[1:2] == [version]]


def _snapshot(paths: list[Path]) -> dict[Path, int]:
    return {path: path.stat().st_mtime_ns for path in paths}


def build_package(
    entry: PlatformEntry,
    packager: PackagerConfig,
    source_dir: Path,
    runner: CommandRunner = run_command,
    env: Optional[Mapping[str, str]] = None,
    timeout_seconds: Optional[int] = None,
) -> list[Path]:
    """
    Build the entry's package(s).

    Only files this build created or rewrote are returned. Leftover wheels
    from an earlier run in the same tree are not picked up.

    Raises:
        PackagingError: If the install or build fails, or the build succeeds
            but leaves nothing matching artifact_glob.
    """
    if packager.install_command:
        install = runner(
            list(packager.install_command),
            cwd=source_dir,
            env=env,
            timeout_seconds=timeout_seconds,
        )
        if not install.success:
            raise PackagingError(
                f"Installing {packager.program} failed (exit {install.exit_code})",
                diagnostics=install.output,
            )

    before = _snapshot(find_packages(packager, source_dir, entry))

    argv = package_command(packager, entry)
    logger.info("Building package", extra={"platform_id": entry.platform_id, "argv": argv})

    result = runner(argv, cwd=source_dir, env=env, timeout_seconds=timeout_seconds)
    if not result.success:
        raise PackagingError(
            f"Package build failed for '{entry.platform_id}' (exit {result.exit_code})",
            diagnostics=result.output,
        )

    after = _snapshot(find_packages(packager, source_dir, entry))
    produced = sorted(path for path, mtime in after.items() if before.get(path) != mtime)
    if not produced:
        raise PackagingError(
            f"Package build for '{entry.platform_id}' succeeded but produced no "
            f"'{packager.artifact_glob}' in {package_output_dir(packager, entry)}",
            diagnostics=result.output,
        )

    logger.info(
        "Package built",
        extra={"platform_id": entry.platform_id, "packages": [path.name for path in produced]},
    )
    return produced
