# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Run report.

Each run writes one JSON file. It lists every entry's terminal state,
where the entry failed, and what it published with SHA256 hashes. Anyone
following up on a partial release gets the list of entries to re-run from
this file.

    target/relmatrix-report-<tag>-<entries>.json
"""

import json
import logging
import re
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path

from relmatrix import __version__
from relmatrix.logging.logger import get_logger
from relmatrix.pipeline.state import RunReport
from relmatrix.utils.filesystem import atomic_write

_logger: logging.Logger = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def report_to_dict(report: RunReport) -> dict[str, object]:
    """Plain-data form of a report, ready for json.dumps."""
    return {
        "tag": report.tag,
        "succeeded": report.succeeded,
        "failed_entries": report.failed_entries,
        "relmatrix_version": __version__,
        "timestamp": datetime.now(tz=timezone.utc).isoformat(),
        "entries": [asdict(outcome) for outcome in report.outcomes],
    }


def report_path(report: RunReport, output_root: Path) -> Path:
    """Where a report for this tag and entry set is written."""
    entries = "_".join(outcome.platform_id for outcome in report.outcomes) or "none"
    name = f"relmatrix-report-{report.tag}-{entries}.json"
    return output_root / _UNSAFE_CHARS.sub("_", name)


def write_report(report: RunReport, output_root: Path) -> Path:
    """
    Write the report atomically and return its path.

    Raises:
        OSError: If the file can't be written.
    """
    path = report_path(report, output_root)
    content = json.dumps(report_to_dict(report), indent=2, sort_keys=True, default=str) + "\n"
    atomic_write(path, content)

    _logger.info(
        "Run report written",
        extra={"path": str(path), "succeeded": report.succeeded},
    )
    return path


def load_report(path: Path) -> dict[str, object]:
    """
    Read a report back.

    Raises:
        FileNotFoundError: If the file doesn't exist.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Report not found: {path}")
    return json.loads(path.read_text(encoding="utf-8"))
