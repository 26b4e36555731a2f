# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Toolchain provisioner.

Hosted runners ship a native Rust toolchain, so most entries need nothing.
Entries that cross-compile declare it with `needs_toolchain` and a
ToolchainRequirement, and get three steps:

    1. install the system packages (e.g. `apt-get install musl-tools`)
    2. `rustup target add <triple>`
    3. run the verify command (e.g. `musl-gcc --version`)

Entries without the flag are a guaranteed no-op: the runner is never
called for them.
"""

from pathlib import Path
from typing import Mapping, Optional

from relmatrix.config.schema import PlatformEntry
from relmatrix.logging.logger import get_logger
from relmatrix.pipeline.commands import CommandRunner, run_command
from relmatrix.pipeline.errors import ProvisioningError

logger = get_logger(__name__)


def provisioning_commands(entry: PlatformEntry, rustup: str = "rustup") -> list[list[str]]:
    """The install + verify commands for an entry, in order. Empty means skip."""
    if not entry.needs_toolchain or entry.toolchain is None:
        return []

    requirement = entry.toolchain
    commands: list[list[str]] = []
    if requirement.system_packages:
        commands.append([*requirement.install_command, *requirement.system_packages])
    commands.append([rustup, "target", "add", requirement.target])
    if requirement.verify_command:
        commands.append(list(requirement.verify_command))
    return commands


def provision(
    entry: PlatformEntry,
    source_dir: Path,
    runner: CommandRunner = run_command,
    rustup: str = "rustup",
    env: Optional[Mapping[str, str]] = None,
    timeout_seconds: Optional[int] = None,
) -> bool:
    """
    Make sure the entry's toolchain requirement is installed and working.

    Returns:
        True if anything was installed, False if the stage was skipped.

    Raises:
        ProvisioningError: On the first command that fails. Later commands
            don't run.
    """
    commands = provisioning_commands(entry, rustup=rustup)
    if not commands:
        logger.info(
            "No toolchain requirement, provisioning skipped",
            extra={"platform_id": entry.platform_id},
        )
        return False

    logger.info(
        "Provisioning toolchain",
        extra={
            "platform_id": entry.platform_id,
            "target": entry.toolchain.target if entry.toolchain else None,
            "steps": len(commands),
        },
    )

    for argv in commands:
        result = runner(argv, cwd=source_dir, env=env, timeout_seconds=timeout_seconds)
        if not result.success:
            raise ProvisioningError(
                f"Provisioning step failed for '{entry.platform_id}': "
                f"{' '.join(argv)} exited with {result.exit_code}",
                diagnostics=result.output,
            )

    logger.info("Toolchain provisioned", extra={"platform_id": entry.platform_id})
    return True
