# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Per-entry runner: one platform entry through all five stages.

    provision -> build -> package -> collect -> publish

Stages run strictly in order, each blocking until it's done. The first one
that raises moves the entry to FAILED, and the stages after it don't run.
This is the boundary where an entry's exceptions are turned into a recorded
outcome so they can't take sibling entries down with them. Inside a stage,
nothing is caught and nothing is retried.
"""

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from relmatrix.config.schema import PipelineConfig, PlatformEntry
from relmatrix.logging.logger import get_logger
from relmatrix.matrix.trigger import TriggerEvent
from relmatrix.pipeline.builder import build, build_command
from relmatrix.pipeline.collector import canonical_path, collect
from relmatrix.pipeline.commands import CommandRunner, run_command
from relmatrix.pipeline.errors import PipelineError
from relmatrix.pipeline.packager import (
    build_package,
    find_packages,
    package_command,
    packages_for_tag,
)
from relmatrix.pipeline.provisioner import provision, provisioning_commands
from relmatrix.pipeline.publisher import PublishResult, publish
from relmatrix.pipeline.state import NEXT_STATE, EntryOutcome, EntryState
from relmatrix.release.pool import ArtifactPool
from relmatrix.release.targets import ReleaseTarget
from relmatrix.utils.paths import resolve_under

logger = get_logger(__name__)


@dataclass(frozen=True)
class PipelineContext:
    """Everything an entry needs that isn't the entry itself. Shared read-only."""

    trigger: TriggerEvent
    pipeline: PipelineConfig
    source_dir: Path
    pool: ArtifactPool
    target: ReleaseTarget
    runner: CommandRunner = run_command

    @property
    def output_root(self) -> Path:
        return resolve_under(self.source_dir, self.pipeline.output_root)


class _Tracker:
    """Walks one entry through the state machine and records where it has been."""

    def __init__(self, entry: PlatformEntry, tag: str) -> None:
        self.entry = entry
        self.tag = tag
        self.state = EntryState.PENDING
        self.transitions: list[EntryState] = [EntryState.PENDING]

    def advance(self, to: EntryState) -> None:
        expected = NEXT_STATE.get(self.state)
        if to is not expected:
            raise RuntimeError(f"Illegal transition {self.state.value} -> {to.value}")
        self.state = to
        self.transitions.append(to)
        logger.debug(
            "Entry state changed",
            extra={"platform_id": self.entry.platform_id, "tag": self.tag, "state": to.value},
        )

    def fail(self) -> None:
        self.state = EntryState.FAILED
        self.transitions.append(EntryState.FAILED)


def _failed_outcome(
    tracker: _Tracker,
    err: Exception,
    started: float,
    canonical: Optional[Path] = None,
    packages: tuple[str, ...] = (),
) -> EntryOutcome:
    stage = err.stage if isinstance(err, PipelineError) else "internal"
    diagnostics = err.diagnostics if isinstance(err, PipelineError) else None
    tracker.fail()
    logger.error(
        "Entry failed",
        extra={
            "platform_id": tracker.entry.platform_id,
            "tag": tracker.tag,
            "stage": stage,
            "error": str(err),
            "diagnostics": diagnostics,
        },
        exc_info=not isinstance(err, PipelineError),
    )
    return EntryOutcome(
        platform_id=tracker.entry.platform_id,
        state=EntryState.FAILED,
        transitions=tuple(tracker.transitions),
        failed_stage=stage,
        error=str(err),
        diagnostics=diagnostics,
        canonical_artifact=str(canonical) if canonical else None,
        package_artifacts=packages,
        elapsed_seconds=time.monotonic() - started,
    )


def _published_outcome(
    tracker: _Tracker, result: PublishResult, canonical: Path, started: float
) -> EntryOutcome:
    return EntryOutcome(
        platform_id=tracker.entry.platform_id,
        state=tracker.state,
        transitions=tuple(tracker.transitions),
        canonical_artifact=str(canonical),
        artifact_sha256=result.sha256,
        asset_location=result.asset_location,
        package_artifacts=result.pooled,
        elapsed_seconds=time.monotonic() - started,
    )


def run_entry(entry: PlatformEntry, ctx: PipelineContext) -> EntryOutcome:
    """
    Run the full pipeline for one entry and return its terminal outcome.

    Never raises for stage failures; they become a FAILED outcome carrying
    the stage name and diagnostics.
    """
    started = time.monotonic()
    tracker = _Tracker(entry, ctx.trigger.tag)
    pipeline = ctx.pipeline
    timeout = pipeline.command_timeout_seconds
    canonical: Optional[Path] = None
    packages: list[Path] = []

    logger.info(
        "Entry started",
        extra={"platform_id": entry.platform_id, "tag": ctx.trigger.tag},
    )

    try:
        provision(
            entry,
            ctx.source_dir,
            runner=ctx.runner,
            rustup=pipeline.compiler.rustup,
            env=pipeline.compiler.env,
            timeout_seconds=timeout,
        )
        tracker.advance(EntryState.PROVISIONED)

        build(entry, pipeline.compiler, ctx.source_dir, runner=ctx.runner, timeout_seconds=timeout)
        tracker.advance(EntryState.BUILT)

        packages = build_package(
            entry,
            pipeline.packager,
            ctx.source_dir,
            runner=ctx.runner,
            env=pipeline.compiler.env,
            timeout_seconds=timeout,
        )
        tracker.advance(EntryState.PACKAGED)

        canonical = collect(entry, ctx.source_dir, ctx.output_root)
        tracker.advance(EntryState.COLLECTED)

        result = publish(entry, canonical, packages, ctx.trigger, ctx.pool, ctx.target)
        tracker.advance(EntryState.PUBLISHED)
    except Exception as err:
        return _failed_outcome(
            tracker, err, started, canonical, tuple(path.name for path in packages)
        )

    logger.info(
        "Entry finished",
        extra={
            "platform_id": entry.platform_id,
            "tag": ctx.trigger.tag,
            "elapsed_seconds": round(time.monotonic() - started, 3),
        },
    )
    return _published_outcome(tracker, result, canonical, started)


def publish_entry(entry: PlatformEntry, ctx: PipelineContext) -> EntryOutcome:
    """
    Re-run only the publish stage, from what's already on disk.

    This is how a failed entry is remediated without rebuilding. The
    canonical artifact must already exist (strict match applies). Wheels in
    the entry's package directory are pooled alongside it, but only those
    whose version matches the tag, so leftovers from older releases stay put.
    """
    started = time.monotonic()
    tracker = _Tracker(entry, ctx.trigger.tag)
    canonical: Optional[Path] = None

    try:
        canonical = canonical_path(entry, ctx.output_root)
        packages = packages_for_tag(
            find_packages(ctx.pipeline.packager, ctx.source_dir, entry), ctx.trigger.tag
        )
        result = publish(entry, canonical, packages, ctx.trigger, ctx.pool, ctx.target)
    except Exception as err:
        return _failed_outcome(tracker, err, started, canonical)

    # Publish-only runs skip the earlier stages, so the path is recorded as is.
    tracker.state = EntryState.PUBLISHED
    tracker.transitions.append(EntryState.PUBLISHED)
    return _published_outcome(tracker, result, canonical, started)


def plan_entry(entry: PlatformEntry, pipeline: PipelineConfig) -> list[list[str]]:
    """Every command a real run of `entry` would execute, in order. Used by --dry-run."""
    plan = provisioning_commands(entry, rustup=pipeline.compiler.rustup)
    plan.extend(list(argv) for argv in pipeline.compiler.version_commands)
    plan.append(build_command(pipeline.compiler, entry))
    if pipeline.packager.install_command:
        plan.append(list(pipeline.packager.install_command))
    plan.append(package_command(pipeline.packager, entry))
    return plan
