# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Platform entries: building, resolving and selecting matrix rows.

The built-in matrix covers the three hosted runners:

    linux    cross-compiled against musl for a fully static binary
    mac      native build
    windows  native build, .exe

Published names follow `{base}-{suffix}[.exe]`, so three executables that
all come out of cargo as `maxtime` can sit side by side in one release.
"""

import platform
from typing import Iterable, Optional, Sequence

from relmatrix.config.schema import (
    EXECUTABLE_SUFFIX,
    WINDOWS_PLATFORM_ID,
    PipelineConfig,
    PlatformEntry,
    ToolchainRequirement,
)

MUSL_TARGET = "x86_64-unknown-linux-musl"

# platform.system() -> platform_id
_HOST_PLATFORM_IDS: dict[str, str] = {
    "Linux": "linux",
    "Darwin": "mac",
    "Windows": "windows",
}


def canonical_output_name(base_name: str, suffix: str, windows: bool = False) -> str:
    """`maxtime`, `linux` -> `maxtime-linux`; windows entries keep `.exe`."""
    name = f"{base_name}-{suffix}"
    return name + EXECUTABLE_SUFFIX if windows else name


def default_matrix(base_name: str) -> list[PlatformEntry]:
    """The linux/mac/windows matrix for an executable called `base_name`."""
    return [
        PlatformEntry(
            platform_id="linux",
            runs_on="ubuntu-latest",
            toolchain_extra_flags=["--target", MUSL_TARGET],
            primary_output_path=f"target/{MUSL_TARGET}/release/{base_name}",
            canonical_output_name=canonical_output_name(base_name, "linux"),
            needs_toolchain=True,
            toolchain=ToolchainRequirement(
                target=MUSL_TARGET,
                system_packages=["musl-tools"],
                verify_command=["musl-gcc", "--version"],
            ),
        ),
        PlatformEntry(
            platform_id="mac",
            runs_on="macos-latest",
            primary_output_path=f"target/release/{base_name}",
            canonical_output_name=canonical_output_name(base_name, "mac"),
        ),
        PlatformEntry(
            platform_id=WINDOWS_PLATFORM_ID,
            runs_on="windows-latest",
            primary_output_path=f"target/release/{base_name}{EXECUTABLE_SUFFIX}",
            canonical_output_name=canonical_output_name(base_name, "windows", windows=True),
        ),
    ]


def resolve_matrix(pipeline: PipelineConfig) -> list[PlatformEntry]:
    """The configured matrix, or the default one for pipeline.base_name."""
    if pipeline.matrix is not None:
        return list(pipeline.matrix)
    return default_matrix(pipeline.base_name)


def select_entries(
    entries: Sequence[PlatformEntry], platform_ids: Optional[Iterable[str]]
) -> list[PlatformEntry]:
    """
    Pick matrix rows by platform_id, keeping matrix order.

    None selects everything.

    Raises:
        ValueError: If an id isn't in the matrix.
    """
    if platform_ids is None:
        return list(entries)

    wanted = list(dict.fromkeys(platform_ids))
    known = {entry.platform_id for entry in entries}
    unknown = [pid for pid in wanted if pid not in known]
    if unknown:
        raise ValueError(
            f"Unknown platform id(s): {', '.join(unknown)}. "
            f"Matrix has: {', '.join(entry.platform_id for entry in entries)}"
        )
    return [entry for entry in entries if entry.platform_id in wanted]


def host_platform_id() -> str:
    """The platform_id of the machine we're running on."""
    system = platform.system()
    return _HOST_PLATFORM_IDS.get(system, system.lower())


def matrix_include(entries: Sequence[PlatformEntry]) -> dict[str, list[dict[str, object]]]:
    """The matrix in GitHub Actions `strategy.matrix` shape."""
    include: list[dict[str, object]] = []
    for entry in entries:
        include.append(
            {
                "platform_id": entry.platform_id,
                "os": entry.runs_on,
                "toolchain_extra_flags": " ".join(entry.toolchain_extra_flags),
                "primary_output_path": entry.primary_output_path,
                "canonical_output_name": entry.canonical_output_name,
                "needs_toolchain": entry.needs_toolchain,
            }
        )
    return {"include": include}
