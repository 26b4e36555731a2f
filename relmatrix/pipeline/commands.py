# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
External command execution.

Every toolchain call in the pipeline (rustup, cargo, maturin, apt-get) goes
through run_command. It runs the subprocess, captures everything, enforces
an optional timeout and returns a structured result. Deciding whether a
non-zero exit is fatal is the caller's job.

No shell=True anywhere: argv lists only, so flags from config can't be
reinterpreted by a shell.

Stages take the runner as a parameter (the CommandRunner type) so tests can
swap in a fake that records argv and drops files where cargo would.
"""

import os
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence

from relmatrix.logging.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """What happened when we ran one command."""

    argv: tuple[str, ...]
    exit_code: int
    stdout: str
    stderr: str
    elapsed_seconds: float

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """stdout and stderr joined, for error diagnostics."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


CommandRunner = Callable[..., CommandResult]


def build_env(overlay: Optional[Mapping[str, str]] = None) -> dict[str, str]:
    """The inherited environment with `overlay` on top."""
    env = dict(os.environ)
    if overlay:
        env.update(overlay)
    return env


def run_command(
    argv: Sequence[str],
    cwd: Path,
    env: Optional[Mapping[str, str]] = None,
    timeout_seconds: Optional[int] = None,
) -> CommandResult:
    """
    Run one command and capture the result.

    A missing executable or a timeout comes back as exit_code -1 with the
    reason in stderr, so callers only ever have to look at exit_code.

    Args:
        argv: Program and arguments.
        cwd: Working directory (the source tree).
        env: Extra environment variables, overlaid on the inherited ones.
        timeout_seconds: Kill the process after this long. None waits forever.
    """
    argv_tuple = tuple(argv)
    start = time.monotonic()

    logger.debug("Running command", extra={"argv": list(argv_tuple), "cwd": str(cwd)})

    try:
        result = subprocess.run(
            list(argv_tuple),
            capture_output=True,
            text=True,
            timeout=timeout_seconds,
            cwd=str(cwd),
            env=build_env(env),
            check=False,
        )
    except subprocess.TimeoutExpired:
        elapsed = time.monotonic() - start
        logger.warning(
            "Command timed out",
            extra={"argv": list(argv_tuple), "timeout_seconds": timeout_seconds},
        )
        return CommandResult(
            argv=argv_tuple,
            exit_code=-1,
            stdout="",
            stderr=f"{argv_tuple[0]} timed out after {timeout_seconds}s",
            elapsed_seconds=elapsed,
        )
    except FileNotFoundError:
        elapsed = time.monotonic() - start
        logger.error("Executable not found", extra={"program": argv_tuple[0]})
        return CommandResult(
            argv=argv_tuple,
            exit_code=-1,
            stdout="",
            stderr=f"{argv_tuple[0]} executable not found",
            elapsed_seconds=elapsed,
        )

    elapsed = time.monotonic() - start
    logger.debug(
        "Command finished",
        extra={
            "argv": list(argv_tuple),
            "exit_code": result.returncode,
            "elapsed_seconds": round(elapsed, 3),
        },
    )
    return CommandResult(
        argv=argv_tuple,
        exit_code=result.returncode,
        stdout=result.stdout,
        stderr=result.stderr,
        elapsed_seconds=elapsed,
    )
