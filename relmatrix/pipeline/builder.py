# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Platform build executor.

Runs the release build of the primary executable:

    cargo build --verbose --release --locked [toolchain_extra_flags...]

`--locked` is required by the config schema, so cargo refuses to touch the
lock file and the build only ever uses the dependency set it pins. A compile
error or a lock mismatch is fatal to the entry, the full compiler output is
attached to the error, and nothing is retried.

Before building, the toolchain versions are logged. A failed build is much
easier to read when you know which rustc produced it.
"""

from pathlib import Path
from typing import Optional

from relmatrix.config.schema import CompilerConfig, PlatformEntry
from relmatrix.logging.logger import get_logger
from relmatrix.pipeline.commands import CommandRunner, run_command
from relmatrix.pipeline.errors import BuildError, PathContractError
from relmatrix.utils.paths import resolve_under

logger = get_logger(__name__)


def build_command(compiler: CompilerConfig, entry: PlatformEntry) -> list[str]:
    """The exact build argv for an entry."""
    return [compiler.program, *compiler.build_args, *entry.toolchain_extra_flags]


def report_toolchain_versions(
    compiler: CompilerConfig,
    source_dir: Path,
    runner: CommandRunner = run_command,
    timeout_seconds: Optional[int] = None,
) -> dict[str, str]:
    """
    Run each version command and log what it prints.

    Returns:
        Program name -> first line of its output.

    Raises:
        BuildError: If a version command fails. A toolchain that can't
            report its version can't build either.
    """
    versions: dict[str, str] = {}
    for argv in compiler.version_commands:
        result = runner(argv, cwd=source_dir, env=compiler.env, timeout_seconds=timeout_seconds)
        if not result.success:
            raise BuildError(
                f"Toolchain check failed: {' '.join(argv)} exited with {result.exit_code}",
                diagnostics=result.output,
            )
        first_line = result.stdout.strip().splitlines()[0] if result.stdout.strip() else ""
        versions[argv[0]] = first_line

    logger.info("Toolchain versions", extra={"versions": versions})
    return versions


def build(
    entry: PlatformEntry,
    compiler: CompilerConfig,
    source_dir: Path,
    runner: CommandRunner = run_command,
    timeout_seconds: Optional[int] = None,
) -> Path:
    """
    Build the primary executable for one entry.

    Returns:
        The absolute path where the entry expects the executable. Whether it
        is actually there is the collector's call, not ours.

    Raises:
        BuildError: On a non-zero exit, with full compiler diagnostics.
        PathContractError: If primary_output_path points outside the source tree.
    """
    report_toolchain_versions(compiler, source_dir, runner, timeout_seconds)

    argv = build_command(compiler, entry)
    logger.info(
        "Building executable",
        extra={"platform_id": entry.platform_id, "argv": argv},
    )

    result = runner(argv, cwd=source_dir, env=compiler.env, timeout_seconds=timeout_seconds)
    if not result.success:
        logger.error(
            "Build failed",
            extra={
                "platform_id": entry.platform_id,
                "exit_code": result.exit_code,
                "diagnostics": result.output,
            },
        )
        raise BuildError(
            f"Build failed for '{entry.platform_id}' (exit {result.exit_code})",
            diagnostics=result.output,
        )

    try:
        output_path = resolve_under(source_dir, entry.primary_output_path)
    except ValueError as err:
        raise PathContractError(str(err)) from err

    logger.info(
        "Build finished",
        extra={
            "platform_id": entry.platform_id,
            "elapsed_seconds": round(result.elapsed_seconds, 3),
            "expected_output": str(output_path),
        },
    )
    return output_path
