# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Subcommand handlers for the relmatrix CLI.

Each function here corresponds to one CLI subcommand and returns an exit
code. Progress goes through the structured logger. The one exception is
`matrix`, whose JSON on stdout is meant for machines.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from relmatrix.cli.exit_codes import (
    CONFIG_ERROR,
    RUNTIME_ERROR,
    SUCCESS,
    USER_ERROR,
    VALIDATION_ERROR,
)
from relmatrix.config.exceptions import ConfigError
from relmatrix.config.loader import load_config
from relmatrix.config.schema import PlatformEntry, RelMatrixConfig
from relmatrix.logging.logger import configure_package_logging, get_logger
from relmatrix.matrix.entries import (
    host_platform_id,
    matrix_include,
    resolve_matrix,
    select_entries,
)
from relmatrix.matrix.trigger import matches_release_pattern, parse_trigger
from relmatrix.pipeline.errors import PipelineError, TriggerMismatchError
from relmatrix.pipeline.runner import PipelineContext
from relmatrix.utils.paths import resolve_under


def _load(
    args: argparse.Namespace,
    command_name: str,
) -> tuple[int, Optional[RelMatrixConfig], logging.Logger]:
    """
    The shared setup every command needs: logger, then config.

    Returns a tuple of (exit_code, config, logger). If exit_code is not
    SUCCESS, the caller should return it immediately.
    """
    logger = get_logger(f"relmatrix.cli.{command_name}", log_level=args.log_level)

    if args.config is None:
        logger.debug("No config provided, running with defaults", extra={"command": command_name})
        config = RelMatrixConfig.with_defaults()
    else:
        try:
            config = load_config(Path(args.config))
        except ConfigError as err:
            logger.error(
                "Configuration error",
                extra={"command": command_name, "error": str(err)},
            )
            return CONFIG_ERROR, None, logger

    log_file = config.global_config.log_file
    configure_package_logging(args.log_level, Path(log_file) if log_file else None)
    return SUCCESS, config, logger


def _source_dir(config: RelMatrixConfig) -> Path:
    return Path(config.pipeline.source_dir).resolve()


def _build_context(config: RelMatrixConfig, tag: str) -> PipelineContext:
    """
    Assemble the shared context for a real (non-dry) run.

    Raises:
        TriggerMismatchError: If the tag doesn't match the release pattern.
        PublicationError: If the release target can't be configured.
        ValueError: If the pool root resolves outside the source tree.
    """
    from relmatrix.release.pool import ArtifactPool
    from relmatrix.release.targets import build_release_target

    pipeline = config.pipeline
    trigger = parse_trigger(tag, pipeline.tag_pattern)
    source_dir = _source_dir(config)
    pool = ArtifactPool(resolve_under(source_dir, pipeline.pool.root), pipeline.pool.name)
    target = build_release_target(pipeline.release, source_dir)
    return PipelineContext(
        trigger=trigger,
        pipeline=pipeline,
        source_dir=source_dir,
        pool=pool,
        target=target,
    )


def _select(
    args: argparse.Namespace, config: RelMatrixConfig, require_host: bool = True
) -> list[PlatformEntry]:
    """
    Entries for this invocation: --all, the --entry list, or the host's own.

    An entry builds with whatever compiler this machine has, so an entry for
    another platform would publish a binary for the wrong OS under its name.
    Those are refused unless --any-host is given.

    Raises:
        ValueError: If a requested id isn't in the matrix, or targets a
            platform other than this host's.
    """
    matrix = resolve_matrix(config.pipeline)
    host = host_platform_id()
    if args.all_entries:
        entries = select_entries(matrix, None)
    elif args.entries:
        entries = select_entries(matrix, args.entries)
    else:
        return select_entries(matrix, [host])

    foreign = [entry.platform_id for entry in entries if entry.platform_id != host]
    if require_host and foreign and not args.any_host:
        raise ValueError(
            f"Entries {', '.join(foreign)} do not match host platform '{host}'; "
            "run them on their own hosts or pass --any-host"
        )
    return entries


def handle_run(args: argparse.Namespace) -> int:
    """Run the release pipeline for the selected entries."""
    exit_code, config, logger = _load(args, "run")
    if exit_code != SUCCESS or config is None:
        return exit_code

    pipeline = config.pipeline
    if not matches_release_pattern(args.tag, pipeline.tag_pattern):
        logger.error(
            "Tag does not trigger a release",
            extra={"tag": args.tag, "pattern": pipeline.tag_pattern},
        )
        return VALIDATION_ERROR

    try:
        entries = _select(args, config, require_host=not args.dry_run)
    except ValueError as err:
        logger.error("Invalid entry selection", extra={"error": str(err)})
        return USER_ERROR

    if args.dry_run:
        from relmatrix.pipeline.runner import plan_entry

        for entry in entries:
            logger.info(
                "Dry run, would execute",
                extra={
                    "platform_id": entry.platform_id,
                    "commands": plan_entry(entry, pipeline),
                    "rename": [entry.primary_output_path, entry.canonical_output_name],
                },
            )
        return SUCCESS

    from relmatrix.pipeline.coordinator import run_matrix
    from relmatrix.release.report import write_report

    try:
        ctx = _build_context(config, args.tag)
    except PipelineError as err:
        logger.error("Cannot start run", extra={"stage": err.stage, "error": str(err)})
        return RUNTIME_ERROR
    except ValueError as err:
        logger.error("Cannot start run", extra={"error": str(err)})
        return RUNTIME_ERROR

    try:
        report = run_matrix(entries, ctx, max_workers=pipeline.max_parallel)
        write_report(report, ctx.output_root)
    except Exception as err:
        logger.error("Run failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR
    finally:
        ctx.target.close()

    return SUCCESS if report.succeeded else RUNTIME_ERROR


def handle_publish(args: argparse.Namespace) -> int:
    """Publish an entry's existing canonical artifact without rebuilding."""
    exit_code, config, logger = _load(args, "publish")
    if exit_code != SUCCESS or config is None:
        return exit_code

    try:
        (entry,) = select_entries(resolve_matrix(config.pipeline), [args.entry])
    except ValueError as err:
        logger.error("Invalid entry selection", extra={"error": str(err)})
        return USER_ERROR

    if args.dry_run:
        if not matches_release_pattern(args.tag, config.pipeline.tag_pattern):
            logger.error("Tag does not trigger a release", extra={"tag": args.tag})
            return VALIDATION_ERROR
        output_root = _source_dir(config) / config.pipeline.output_root
        logger.info(
            "Dry run, would publish",
            extra={
                "platform_id": entry.platform_id,
                "tag": args.tag,
                "artifact": str(output_root / entry.canonical_output_name),
            },
        )
        return SUCCESS

    try:
        ctx = _build_context(config, args.tag)
    except TriggerMismatchError as err:
        logger.error("Tag does not trigger a release", extra={"error": str(err)})
        return VALIDATION_ERROR
    except PipelineError as err:
        logger.error("Cannot start publish", extra={"stage": err.stage, "error": str(err)})
        return RUNTIME_ERROR
    except ValueError as err:
        logger.error("Cannot start publish", extra={"error": str(err)})
        return RUNTIME_ERROR

    from relmatrix.pipeline.runner import publish_entry
    from relmatrix.pipeline.state import RunReport
    from relmatrix.release.report import write_report

    try:
        outcome = publish_entry(entry, ctx)
        write_report(RunReport(tag=args.tag, outcomes=(outcome,)), ctx.output_root)
    except Exception as err:
        logger.error("Publish failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR
    finally:
        ctx.target.close()

    return SUCCESS if outcome.published else RUNTIME_ERROR


def handle_matrix(args: argparse.Namespace) -> int:
    """Write the matrix to stdout in GitHub Actions `strategy.matrix` shape."""
    exit_code, config, _logger = _load(args, "matrix")
    if exit_code != SUCCESS or config is None:
        return exit_code

    payload = matrix_include(resolve_matrix(config.pipeline))
    sys.stdout.write(json.dumps(payload, sort_keys=True) + "\n")
    return SUCCESS


def handle_check_tag(args: argparse.Namespace) -> int:
    """Exit 0 if the tag would trigger a release, VALIDATION_ERROR otherwise."""
    exit_code, config, logger = _load(args, "check-tag")
    if exit_code != SUCCESS or config is None:
        return exit_code

    pattern = config.pipeline.tag_pattern
    if matches_release_pattern(args.tag, pattern):
        logger.info("Tag triggers a release", extra={"tag": args.tag, "pattern": pattern})
        return SUCCESS

    logger.info("Tag does not trigger a release", extra={"tag": args.tag, "pattern": pattern})
    return VALIDATION_ERROR


def handle_info(args: argparse.Namespace) -> int:
    """Display environment and configuration information."""
    exit_code, config, logger = _load(args, "info")
    if exit_code != SUCCESS or config is None:
        return exit_code

    import platform

    from relmatrix import __version__

    pipeline = config.pipeline
    logger.info(
        "System information",
        extra={
            "relmatrix_version": __version__,
            "python_version": platform.python_version(),
            "host_platform_id": host_platform_id(),
            "architecture": platform.machine(),
            "config": args.config,
            "tag_pattern": pipeline.tag_pattern,
            "release_provider": pipeline.release.provider,
            "entries": [entry.platform_id for entry in resolve_matrix(pipeline)],
        },
    )
    return SUCCESS
