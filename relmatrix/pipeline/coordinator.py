# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Fan-out coordinator.

One trigger, N entries, one worker per entry. Workers share nothing but the
pool and the release target, both append-only. No entry waits on another,
and a failure cancels nobody. The run report is assembled only after every
worker has finished. Outcomes are listed in matrix order, whatever order
they actually completed in.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence

from relmatrix.config.schema import PlatformEntry
from relmatrix.logging.logger import get_logger
from relmatrix.pipeline.runner import PipelineContext, run_entry
from relmatrix.pipeline.state import RunReport

logger = get_logger(__name__)


def run_matrix(
    entries: Sequence[PlatformEntry],
    ctx: PipelineContext,
    max_workers: Optional[int] = None,
) -> RunReport:
    """
    Run every entry in parallel and collect their outcomes.

    Args:
        entries: The matrix rows to run.
        ctx: Shared context (trigger, config, pool, release target).
        max_workers: Parallelism cap. Defaults to one worker per entry.

    Returns:
        A RunReport. Its `succeeded` is True only if every entry published.
    """
    if not entries:
        logger.warning("No entries selected, nothing to run", extra={"tag": ctx.trigger.tag})
        return RunReport(tag=ctx.trigger.tag, outcomes=())

    workers = max_workers or len(entries)
    logger.info(
        "Run started",
        extra={
            "tag": ctx.trigger.tag,
            "entries": [entry.platform_id for entry in entries],
            "workers": workers,
        },
    )

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="relmatrix") as executor:
        futures = [executor.submit(run_entry, entry, ctx) for entry in entries]
        outcomes = tuple(future.result() for future in futures)

    report = RunReport(tag=ctx.trigger.tag, outcomes=outcomes)

    log_fn = logger.info if report.succeeded else logger.error
    log_fn(
        "Run finished",
        extra={
            "tag": report.tag,
            "succeeded": report.succeeded,
            "states": {outcome.platform_id: outcome.state.value for outcome in outcomes},
            "failed_entries": report.failed_entries,
        },
    )
    return report
